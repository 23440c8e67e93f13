"""Tests for amenity_scoring.py: count score, proximity bonus, row conversion."""

import pytest

from amenity_scoring import (
    AMENITY_CATEGORIES,
    AmenityCategoryResult,
    AmenityPlace,
    amenity_scores_from_rows,
    calculate_amenity_score,
    calculate_count_score,
    calculate_proximity_bonus,
    convert_amenities_to_rows,
)
from location_data import AreaDescriptor, GeographicLevel, SourceType, row_from_dict, row_to_dict

UTRECHT = AreaDescriptor("GM0344", "Utrecht")


class TestCountScore:
    @pytest.mark.parametrize("count,expected", [
        (0, -1.0),
        (1, 0.0),
        (2, 0.25),
        (3, 0.5),
        (5, 1.0),
        (6, 1.0),
        (40, 1.0),
    ])
    def test_curve(self, count, expected):
        assert calculate_count_score(count) == pytest.approx(expected)


class TestProximityBonus:
    def test_within_threshold(self):
        assert calculate_proximity_bonus([AmenityPlace("a", 400), AmenityPlace("b", 250)]) == 1

    def test_outside_threshold(self):
        assert calculate_proximity_bonus([AmenityPlace("a", 251)]) == 0

    def test_unknown_distance_ignored(self):
        assert calculate_proximity_bonus([AmenityPlace("a", None)]) == 0

    def test_no_places(self):
        assert calculate_proximity_bonus([]) == 0


class TestCalculateAmenityScore:
    def test_combined_score(self):
        s = calculate_amenity_score(AmenityCategoryResult(
            "zorg_primair", (AmenityPlace("Huisarts", 180), AmenityPlace("Apotheek", 420)),
        ))
        assert s.count == 2
        assert s.count_score == pytest.approx(0.25)
        assert s.proximity_bonus == 1
        # ((0.25 + 1) / 2 + 1) / 2
        assert s.combined_score == pytest.approx(0.8125)
        assert s.closest_distance_m == 180
        assert s.category_name == "Zorg (Huisarts & Apotheek)"

    def test_reported_count_overrides_place_list(self):
        s = calculate_amenity_score(AmenityCategoryResult(
            "openbaar_vervoer", (AmenityPlace("Halte", 90),), count=8,
        ))
        assert s.count == 8
        assert s.count_score == 1.0
        assert s.combined_score == pytest.approx(1.0)

    def test_empty_category(self):
        s = calculate_amenity_score(AmenityCategoryResult("winkels_dagelijks"))
        assert s.count_score == -1.0
        assert s.combined_score == 0.0
        assert s.closest_distance_m is None

    def test_unknown_category_uses_id_as_name(self):
        s = calculate_amenity_score(AmenityCategoryResult("ijssalon"))
        assert s.category_name == "ijssalon"

    def test_catalogue_has_twenty_unique_categories(self):
        ids = [c.category_id for c in AMENITY_CATEGORIES]
        assert len(ids) == 20
        assert len(set(ids)) == 20


class TestConvertAmenitiesToRows:
    def _rows(self):
        scores = [calculate_amenity_score(AmenityCategoryResult("kinderopvang", (AmenityPlace("Kdv", 300),)))]
        return convert_amenities_to_rows(scores, UTRECHT)

    def test_two_rows_per_category(self):
        count_row, prox_row = self._rows()
        assert count_row.key == "amenity_kinderopvang_count"
        assert prox_row.key == "amenity_kinderopvang_proximity"

    def test_rows_at_municipality(self):
        for row in self._rows():
            assert row.source == SourceType.AMENITIES
            assert row.geographic_level == GeographicLevel.MUNICIPALITY
            assert row.geographic_code == "GM0344"
            assert row.relative is None

    def test_titles(self):
        count_row, prox_row = self._rows()
        assert count_row.title == "Kinderopvang & Opvang - Aantal"
        assert prox_row.title == "Kinderopvang & Opvang - Nabijheid (250m)"

    def test_precomputed_scores(self):
        count_row, prox_row = self._rows()
        assert count_row.calculated_score == 0.0
        assert count_row.absolute == 1.0
        assert prox_row.calculated_score == 0.0
        assert prox_row.original_value == 300
        assert count_row.is_scored and prox_row.is_scored


class TestAmenityScoresFromRows:
    def test_rebuilds_scores_after_serialization(self):
        original = [
            calculate_amenity_score(AmenityCategoryResult("zorg_primair", (AmenityPlace("H", 100),))),
            calculate_amenity_score(AmenityCategoryResult("sportschool")),
        ]
        rows = [row_from_dict(row_to_dict(r)) for r in convert_amenities_to_rows(original, UTRECHT)]
        rebuilt = amenity_scores_from_rows(rows)
        assert [s.category_id for s in rebuilt] == ["zorg_primair", "sportschool"]
        for before, after in zip(original, rebuilt):
            assert after.count == before.count
            assert after.proximity_bonus == before.proximity_bonus
            assert after.combined_score == pytest.approx(before.combined_score)

    def test_ignores_other_rows(self, location, health):
        from aggregator import MultiLevelAggregator
        bundle = MultiLevelAggregator().aggregate(location, health=health)
        assert amenity_scores_from_rows(bundle.health.all_rows()) == []
