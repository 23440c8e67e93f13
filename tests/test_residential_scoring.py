"""Tests for residential_scoring.py: reference-house bucketing and rows."""

import pytest

from location_data import AreaDescriptor, ReferenceHouse, SourceType, GeographicLevel
from residential_scoring import (
    bucket_score,
    build_residential_payload,
    calculate_averages,
    calculate_residential_scores,
    parse_price_range,
)

UTRECHT = AreaDescriptor("GM0344", "Utrecht")

HOUSES = [
    ReferenceHouse("Portiekwoning", inner_surface_area=55, transaction_price="250000-275000", build_year=1930),
    ReferenceHouse("Galerijflat", inner_surface_area=72, transaction_price="325000-350000", build_year=1975),
    ReferenceHouse("Tussen/rijwoning", inner_surface_area=118, transaction_price="550000-575000", build_year=1910),
]


def _counts(buckets):
    return {b.key: b.count for b in buckets}


class TestBucketScore:
    @pytest.mark.parametrize("count,expected", [
        (0, -1.0),
        (5, -0.5),
        (10, 0.0),
        (15, 0.5),
        (20, 1.0),
        (35, 1.0),
    ])
    def test_scale(self, count, expected):
        assert bucket_score(count) == pytest.approx(expected)


class TestParsePriceRange:
    def test_midpoint(self):
        assert parse_price_range("250000-275000") == 262500

    def test_whitespace_tolerated(self):
        assert parse_price_range(" 300000 - 400000 ") == 350000

    @pytest.mark.parametrize("value", ["", "onbekend", "100000", "1-2-3", "abc-def"])
    def test_unparseable(self, value):
        assert parse_price_range(value) is None


class TestResidentialScores:
    def test_typology_allows_overlap(self):
        scores = calculate_residential_scores(HOUSES)
        counts = _counts(scores["typologie"])
        assert counts == {
            "typologie_laag_stedelijk": 1,
            "typologie_rand_stedelijk": 3,
            "typologie_hoog_stedelijk": 2,
        }

    def test_size_buckets(self):
        counts = _counts(calculate_residential_scores(HOUSES)["woonoppervlak"])
        assert counts == {"woonoppervlak_klein": 1, "woonoppervlak_midden": 1, "woonoppervlak_groot": 1}

    def test_size_boundaries(self):
        houses = [ReferenceHouse("x", inner_surface_area=60), ReferenceHouse("x", inner_surface_area=110)]
        counts = _counts(calculate_residential_scores(houses)["woonoppervlak"])
        assert counts["woonoppervlak_midden"] == 2

    def test_price_buckets_skip_unparseable(self):
        houses = HOUSES + [ReferenceHouse("Galerijflat", transaction_price="op aanvraag")]
        counts = _counts(calculate_residential_scores(houses)["transactieprijs"])
        assert counts == {"transactieprijs_laag": 2, "transactieprijs_midden": 0, "transactieprijs_hoog": 1}

    def test_price_boundaries(self):
        houses = [
            ReferenceHouse("x", transaction_price="340000-360000"),
            ReferenceHouse("x", transaction_price="520000-530000"),
        ]
        counts = _counts(calculate_residential_scores(houses)["transactieprijs"])
        assert counts["transactieprijs_midden"] == 2

    def test_averages(self):
        averages = calculate_averages(HOUSES)
        assert averages["transactieprijs"] == 387500
        assert averages["woonoppervlakte"] == 82
        assert averages["bouwjaar"] == 1938
        assert averages["inhoud"] is None
        assert averages["geindexeerde_transactieprijs"] is None


class TestBuildResidentialPayload:
    def test_no_houses(self):
        payload = build_residential_payload([], UTRECHT)
        assert payload.has_data is False
        assert payload.rows == []
        assert payload.scores is None

    def test_none_treated_as_empty(self):
        assert build_residential_payload(None, UTRECHT).has_data is False

    def test_nine_rows_at_municipality(self):
        payload = build_residential_payload(HOUSES, UTRECHT)
        assert payload.has_data is True
        assert len(payload.rows) == 9
        for row in payload.rows:
            assert row.source == SourceType.RESIDENTIAL
            assert row.geographic_level == GeographicLevel.MUNICIPALITY
            assert row.geographic_code == "GM0344"
            assert row.is_scored

    def test_row_scores_and_shares(self):
        payload = build_residential_payload(HOUSES, UTRECHT)
        by_key = {r.key: r for r in payload.rows}
        rand = by_key["typologie_rand_stedelijk"]
        assert rand.title == "Rand stedelijk"
        assert rand.absolute == 3
        assert rand.relative == pytest.approx(100.0)
        assert rand.calculated_score == pytest.approx(-0.7)

    def test_scores_dict_is_serializable(self):
        payload = build_residential_payload(HOUSES, UTRECHT)
        assert set(payload.scores) == {"typologie", "woonoppervlak", "transactieprijs", "averages"}
        assert payload.scores["typologie"][0] == {
            "key": "typologie_laag_stedelijk", "title": "Laag stedelijk", "count": 1, "score": pytest.approx(-0.9),
        }
