"""Tests for personas.py: persona catalogue, mappings, shared spaces."""

import pytest

from amenity_scoring import AMENITY_CATEGORIES
from personas import (
    AGE_SENIOR,
    AGE_YOUNG,
    ALL_TARGET_GROUPS,
    CHAR_AGE,
    CHAR_INCOME,
    HH_FAMILY,
    HOUSING_PERSONAS,
    INCOME_BRACKETS,
    INCOME_LOW,
    SCORING_MAPPINGS,
    SHARED_SPACES,
    get_persona,
    normalize_descriptor,
    slugify,
    subcategory_for_title,
)


def _weight(persona, subcategory):
    for w in persona.weights:
        if w.subcategory == subcategory:
            return w.multiplier
    raise KeyError(subcategory)


class TestPersonaCatalogue:
    def test_twenty_seven_personas(self):
        assert len(HOUSING_PERSONAS) == 27

    def test_every_descriptor_combination_once(self):
        combos = {(p.income_level, p.household_type, p.age_group) for p in HOUSING_PERSONAS}
        assert len(combos) == 27

    def test_ids_are_slugs(self):
        assert HOUSING_PERSONAS[0].id == "hard-van-start"
        assert get_persona("carrierestarter").name == "Carrièrestarter"

    def test_get_persona_unknown(self):
        with pytest.raises(ValueError, match="Unknown persona"):
            get_persona("de-onbekende")

    def test_to_dict(self):
        d = get_persona("hard-van-start").to_dict()
        assert d == {
            "id": "hard-van-start",
            "name": "Hard van Start",
            "income_level": INCOME_LOW,
            "household_type": "1persoons",
            "age_group": AGE_YOUNG,
        }


class TestWeights:
    def test_one_weight_per_mapping(self):
        for persona in HOUSING_PERSONAS:
            assert len(persona.weights) == len(SCORING_MAPPINGS)

    def test_multipliers_follow_descriptor(self):
        starter = get_persona("hard-van-start")  # low income, single, 20-35
        assert _weight(starter, "Openbaar vervoer (halte)") == 3
        assert _weight(starter, "Mid-range Restaurants (€€€)") == 1
        assert _weight(starter, "Zorg (Huisarts & Apotheek)") == 1
        assert _weight(starter, "Onderwijs (Hoger onderwijs)") == 3

    def test_family_cares_most_about_schools(self):
        families = [p for p in HOUSING_PERSONAS if p.household_type == HH_FAMILY]
        assert len(families) == 9
        assert all(_weight(p, "Onderwijs (Basisschool)") == 3 for p in families)

    def test_multipliers_in_range(self):
        for persona in HOUSING_PERSONAS:
            assert {w.multiplier for w in persona.weights} <= {0, 1, 2, 3}

    def test_senior_weight_on_primary_care(self):
        seniors = [p for p in HOUSING_PERSONAS if p.age_group == AGE_SENIOR]
        assert len(seniors) == 9
        assert all(_weight(p, "Zorg (Huisarts & Apotheek)") == 3 for p in seniors)


class TestScoringMappings:
    def test_subcategories_unique(self):
        names = [m.subcategory for m in SCORING_MAPPINGS]
        assert len(names) == len(set(names))

    def test_every_amenity_category_mapped(self):
        subcategories = {m.subcategory for m in SCORING_MAPPINGS}
        for category in AMENITY_CATEGORIES:
            assert category.name in subcategories

    def test_income_brackets_mapped_to_income(self):
        by_name = {m.subcategory: m for m in SCORING_MAPPINGS}
        for bracket in INCOME_BRACKETS:
            assert by_name[bracket].characteristic_type == CHAR_INCOME

    def test_multiplier_for_unknown_descriptor(self):
        mapping = next(m for m in SCORING_MAPPINGS if m.characteristic_type == CHAR_AGE)
        assert mapping.multiplier_for("onbekend") == 0


class TestTitleMapping:
    def test_proximity_row_maps_to_category(self):
        assert subcategory_for_title("Groen & Recreatie - Nabijheid (250m)") == "Groen & Recreatie"

    def test_residential_bucket_title(self):
        assert subcategory_for_title("Hoog stedelijk") == "Woningtype - Hoogstedelijk"

    def test_unmapped_title_used_verbatim(self):
        assert subcategory_for_title("Geluidsoverlast") == "Geluidsoverlast"


class TestDescriptorHelpers:
    @pytest.mark.parametrize("raw,expected", [
        ("Low income", INCOME_LOW),
        ("laag-inkomen", INCOME_LOW),
        ("20 - 35 jaar", AGE_YOUNG),
        ("With children", HH_FAMILY),
        ("iets anders", "iets anders"),
    ])
    def test_normalize_descriptor(self, raw, expected):
        assert normalize_descriptor(raw) == expected

    def test_slugify_strips_accents(self):
        assert slugify("Welvarende Bourgondiërs") == "welvarende-bourgondiers"


class TestSharedSpaces:
    def test_seventeen_spaces(self):
        assert len(SHARED_SPACES) == 17

    def test_spaces_for_everyone(self):
        everyone = {s.id for s in SHARED_SPACES if s.for_everyone}
        assert everyone == {"buurttuin", "bibliotheekhoek"}

    def test_targets_are_known_personas(self):
        names = {p.name for p in HOUSING_PERSONAS}
        for space in SHARED_SPACES:
            for group in space.target_groups:
                assert group == ALL_TARGET_GROUPS or group in names
