"""Tests for persona_ranking.py: location scores, r/z ranking, scenarios."""

import pytest

from aggregator import MultiLevelAggregator
from amenity_scoring import AmenityCategoryResult, AmenityPlace, calculate_amenity_scores, convert_amenities_to_rows
from persona_ranking import (
    build_scenarios,
    calculate_connections,
    calculate_scenarios,
    extract_location_scores,
    income_bracket_scores,
    rank_personas,
    score_persona,
    top_connections_for_persona,
    verify_rank_consistency,
    z_scores,
)
from personas import (
    HH_COUPLE,
    HH_FAMILY,
    HOUSING_PERSONAS,
    INCOME_BRACKET_HIGH,
    INCOME_BRACKET_LOW,
    INCOME_BRACKET_MID,
    SharedSpace,
    get_persona,
)
from scoring_config import apply_scoring

ALL_IDS = [p.id for p in HOUSING_PERSONAS]


@pytest.fixture()
def scored_bundle(location, demographics, health, livability, safety):
    amenity_rows = convert_amenities_to_rows(
        calculate_amenity_scores([AmenityCategoryResult("groen_recreatie", (AmenityPlace("Park", 120),))]),
        location.municipality,
    )
    raw = MultiLevelAggregator().aggregate(
        location,
        demographics=demographics,
        health=health,
        livability=livability,
        safety=safety,
        amenities=amenity_rows,
    )
    return apply_scoring(raw)


# =========================================================================
# Location scores
# =========================================================================

class TestIncomeBrackets:
    @pytest.mark.parametrize("value,match", [
        (30.0, INCOME_BRACKET_LOW),
        (44.0, INCOME_BRACKET_MID),
        (32.0, INCOME_BRACKET_MID),
        (48.0, INCOME_BRACKET_MID),
        (50.0, INCOME_BRACKET_HIGH),
    ])
    def test_exactly_one_bracket_matches(self, value, match):
        brackets = income_bracket_scores(value, 40.0)
        assert brackets[match] == 1.0
        assert sorted(brackets.values()) == [-1.0, -1.0, 1.0]

    @pytest.mark.parametrize("value,baseline", [(None, 40.0), (40.0, None), (40.0, 0)])
    def test_unscoreable(self, value, baseline):
        assert set(income_bracket_scores(value, baseline).values()) == {None}


class TestExtractLocationScores:
    def test_uses_neighborhood_rows(self, scored_bundle):
        scores = extract_location_scores(scored_bundle)
        # 24% young children at neighborhood level vs 16% nationally
        assert scores["Aandeel 0 tot 15 jaar"] == 1.0

    def test_income_split_into_brackets(self, scored_bundle):
        scores = extract_location_scores(scored_bundle)
        assert scores[INCOME_BRACKET_HIGH] == 1.0
        assert scores[INCOME_BRACKET_MID] == -1.0
        assert scores[INCOME_BRACKET_LOW] == -1.0

    def test_livability_from_municipality(self, scored_bundle):
        scores = extract_location_scores(scored_bundle)
        assert scores["Rapportcijfer Leefbaarheid Woonbuurt"] == pytest.approx(0.5)
        assert scores["Geluidsoverlast"] == -1.0

    def test_safety_titles(self, scored_bundle):
        scores = extract_location_scores(scored_bundle)
        assert scores["Diefstal/inbraak woning"] == 1.0
        assert scores["Totaal misdrijven"] == pytest.approx(0.0)

    def test_amenity_proximity_row(self, scored_bundle):
        scores = extract_location_scores(scored_bundle)
        assert scores["Groen & Recreatie"] == 1.0

    def test_missing_score_kept_as_none(self, scored_bundle):
        scores = extract_location_scores(scored_bundle)
        assert "Ervaren Gezondheid Goed / Zeer Goed" in scores
        assert scores["Ervaren Gezondheid Goed / Zeer Goed"] is None
        assert scores["Roker"] == -1.0


# =========================================================================
# Ranking
# =========================================================================

class TestScorePersona:
    def test_weighted_sum(self):
        persona = get_persona("de-groeiers")  # low income, family, 20-35
        result = score_persona(persona, {"Onderwijs (Basisschool)": 0.5, "Openbaar vervoer (halte)": -1.0})
        assert result.category_scores["voorzieningen"] == pytest.approx(3 * 0.5 + 3 * -1.0)
        assert result.weighted_total == pytest.approx(-1.5)

    def test_missing_scores_contribute_zero(self):
        result = score_persona(get_persona("de-groeiers"), {"Onderwijs (Basisschool)": None})
        assert result.weighted_total == 0.0
        detail = next(d for d in result.detailed_scores if d.subcategory == "Onderwijs (Basisschool)")
        assert detail.base_score is None
        assert detail.weighted_score == 0.0

    def test_max_possible_counts_nonzero_multipliers(self):
        persona = get_persona("de-groeiers")
        result = score_persona(persona, {})
        assert result.max_possible_score == sum(w.multiplier for w in persona.weights)


class TestRankPersonas:
    def test_positions_are_permutation(self):
        ranked = rank_personas({"Onderwijs (Basisschool)": 1.0})
        n = len(HOUSING_PERSONAS)
        assert sorted(s.r_rank_position for s in ranked) == list(range(1, n + 1))
        assert sorted(s.z_rank_position for s in ranked) == list(range(1, n + 1))

    def test_highest_total_ranks_first(self):
        ranked = rank_personas({"Onderwijs (Basisschool)": 1.0})
        top = ranked[0]
        assert top.r_rank_position == 1
        assert top.r_rank == 1.0
        assert top.weighted_total == max(s.weighted_total for s in ranked)
        assert get_persona(top.persona_id).household_type == HH_FAMILY

    def test_tiers_by_household(self):
        ranked = rank_personas({"Onderwijs (Basisschool)": 1.0})
        tiers = [get_persona(s.persona_id).household_type for s in ranked]
        assert tiers[:9] == [HH_FAMILY] * 9
        assert tiers[9:18] == [HH_COUPLE] * 9

    def test_r_rank_formula(self):
        ranked = rank_personas({"Onderwijs (Basisschool)": 1.0})
        n = len(ranked)
        for s in ranked:
            assert s.r_rank == pytest.approx((n - s.r_rank_position + 1) / n)
        assert ranked[-1].r_rank == pytest.approx(1 / n)

    def test_z_scores_centered(self):
        ranked = rank_personas({"Onderwijs (Basisschool)": 1.0})
        assert sum(s.z_rank for s in ranked) == pytest.approx(0.0, abs=1e-9)

    def test_no_scores_still_ranks_everyone(self):
        ranked = rank_personas({})
        assert len(ranked) == 27
        assert all(s.weighted_total == 0.0 for s in ranked)
        assert all(s.z_rank == 0.0 for s in ranked)
        # ties keep catalogue order
        assert [s.persona_id for s in ranked] == ALL_IDS
        verify_rank_consistency(ranked, ALL_IDS)

    def test_empty_persona_list(self):
        assert rank_personas({}, personas=()) == []

    def test_to_dict(self):
        d = rank_personas({"Onderwijs (Basisschool)": 1.0})[0].to_dict()
        assert set(d) >= {"persona_id", "weighted_total", "r_rank", "z_rank", "detailed_scores"}


class TestZScores:
    def test_population_std(self):
        assert z_scores([1.0, 3.0]) == [-1.0, 1.0]

    def test_constant_input(self):
        assert z_scores([2.0, 2.0, 2.0]) == [0.0, 0.0, 0.0]

    def test_empty(self):
        assert z_scores([]) == []


class TestVerifyRankConsistency:
    def test_fresh_ranking_passes(self, scored_bundle):
        ranked = rank_personas(extract_location_scores(scored_bundle))
        verify_rank_consistency(ranked, ALL_IDS)

    def test_tampered_z_rank(self):
        ranked = rank_personas({"Onderwijs (Basisschool)": 1.0})
        ranked[3].z_rank += 0.5
        with pytest.raises(ValueError, match="z-rank"):
            verify_rank_consistency(ranked)

    def test_swapped_positions(self):
        ranked = rank_personas({"Onderwijs (Basisschool)": 1.0})
        first, last = ranked[0], ranked[-1]
        first.r_rank_position, last.r_rank_position = last.r_rank_position, first.r_rank_position
        with pytest.raises(ValueError):
            verify_rank_consistency(ranked)

    def test_duplicate_position(self):
        ranked = rank_personas({})
        ranked[1].r_rank_position = 1
        with pytest.raises(ValueError, match="permutation"):
            verify_rank_consistency(ranked)

    def test_missing_persona(self):
        ranked = rank_personas({})[:-1]
        with pytest.raises(ValueError, match="expected persona set"):
            verify_rank_consistency(ranked, ALL_IDS)

    def test_duplicate_persona(self):
        ranked = rank_personas({})
        ranked[1].persona_id = ranked[0].persona_id
        with pytest.raises(ValueError, match="Duplicate"):
            verify_rank_consistency(ranked)


# =========================================================================
# Connections and scenarios
# =========================================================================

class TestConnections:
    def test_spaces_for_everyone_connect_all_pairs(self):
        personas = HOUSING_PERSONAS[:3]
        spaces = [SharedSpace("tuin", "Tuin", "public", ("geschikt voor elke doelgroep",))]
        connections = calculate_connections(personas, spaces)
        assert {(c.from_index, c.to_index, c.count) for c in connections} == {(0, 1, 1), (0, 2, 1), (1, 2, 1)}

    def test_counts_accumulate(self):
        personas = HOUSING_PERSONAS[:2]
        names = (personas[0].name, personas[1].name)
        spaces = [
            SharedSpace("a", "A", "communal", names),
            SharedSpace("b", "B", "communal", names),
        ]
        assert calculate_connections(personas, spaces)[0].count == 2

    def test_unknown_target_ignored(self):
        spaces = [SharedSpace("a", "A", "communal", ("Niemand", HOUSING_PERSONAS[0].name))]
        assert calculate_connections(HOUSING_PERSONAS, spaces) == []

    def test_top_connections_strongest_first(self):
        connections = calculate_connections()
        top = top_connections_for_persona(0, connections, limit=5)
        assert len(top) == 5
        counts = [count for _, count in top]
        assert counts == sorted(counts, reverse=True)
        assert all(other != 0 for other, _ in top)


class TestScenarios:
    def test_three_scenarios_with_distinct_anchors(self):
        ranked = rank_personas({"Onderwijs (Basisschool)": 1.0})
        groups = calculate_scenarios(HOUSING_PERSONAS, ranked, calculate_connections())
        assert len(groups) == 3
        anchors = [g[0] for g in groups]
        assert anchors[0] == 1
        assert len(set(anchors)) == 3
        for g in groups:
            assert 1 <= len(g) <= 4

    def test_members_ordered_by_rank(self):
        ranked = rank_personas({"Onderwijs (Basisschool)": 1.0})
        for g in calculate_scenarios(HOUSING_PERSONAS, ranked, calculate_connections()):
            assert g[1:] == sorted(g[1:])

    def test_later_anchor_never_seen_earlier(self):
        ranked = rank_personas({"Onderwijs (Basisschool)": 1.0})
        groups = calculate_scenarios(HOUSING_PERSONAS, ranked, calculate_connections())
        seen = set()
        for g in groups:
            assert g[0] not in seen
            seen.update(g)

    def test_build_scenarios(self):
        ranked = rank_personas({"Onderwijs (Basisschool)": 1.0})
        scenarios = build_scenarios(ranked)
        assert [s.name for s in scenarios] == ["Scenario 1", "Scenario 2", "Scenario 3"]
        d = scenarios[0].to_dict()
        assert d["positions"][0] == 1
        assert d["persona_ids"][0] == ranked[0].persona_id
        members = [s for s in ranked if s.r_rank_position in d["positions"]]
        assert d["mean_r_rank"] == pytest.approx(sum(m.r_rank for m in members) / len(members))
