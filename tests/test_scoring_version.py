"""Tests for scoring_version.py: version comparison and compatibility checks."""

from datetime import datetime, timezone

import pytest

from scoring_version import (
    CURRENT_SCORING_VERSION,
    MIN_COMPATIBLE_VERSION,
    SCORING_CHANGELOG,
    changelog_dict,
    changes_between_versions,
    compare_versions,
    create_scoring_metadata,
    is_version_compatible,
)


class TestCompareVersions:
    @pytest.mark.parametrize("a,b,expected", [
        ("1.0.0", "1.0.0", 0),
        ("1.0.0", "1.1.0", -1),
        ("1.10.0", "1.9.0", 1),
        ("2.0", "2.0.0", 0),
        ("1.0.1", "1.0", 1),
    ])
    def test_ordering(self, a, b, expected):
        assert compare_versions(a, b) == expected


class TestIsVersionCompatible:
    def test_missing_version(self):
        result = is_version_compatible(None)
        assert result.compatible is True
        assert result.requires_rescore is False
        assert result.message == "No version recorded (pre-versioning snapshot)"

    def test_empty_string_counts_as_missing(self):
        assert is_version_compatible("").message == "No version recorded (pre-versioning snapshot)"

    def test_below_minimum(self):
        result = is_version_compatible("0.9.0")
        assert result.compatible is False
        assert result.requires_rescore is True
        assert result.message == "Snapshot version 0.9.0 is below minimum compatible version 1.0.0"

    def test_current(self):
        result = is_version_compatible(CURRENT_SCORING_VERSION)
        assert result.compatible is True
        assert result.message == "Snapshot uses current scoring version"

    def test_older_but_compatible(self):
        result = is_version_compatible("1.0.0")
        assert result.compatible is True
        assert result.requires_rescore is False
        assert result.message == f"Snapshot version 1.0.0 is older than current {CURRENT_SCORING_VERSION} but compatible"

    def test_newer(self):
        result = is_version_compatible("9.0.0")
        assert result.compatible is True
        assert result.message == f"Snapshot version 9.0.0 is newer than current {CURRENT_SCORING_VERSION}"

    def test_to_dict(self):
        assert is_version_compatible("0.1.0").to_dict() == {
            "compatible": False,
            "message": "Snapshot version 0.1.0 is below minimum compatible version 1.0.0",
            "requires_rescore": True,
        }


class TestChangelog:
    def test_current_version_documented(self):
        assert CURRENT_SCORING_VERSION in SCORING_CHANGELOG
        assert compare_versions(MIN_COMPATIBLE_VERSION, CURRENT_SCORING_VERSION) <= 0

    def test_changes_between_versions(self):
        lines = changes_between_versions("1.0.0", "1.1.0")
        assert lines[0].startswith("v1.1.0 (")
        assert "  - Scoring version tracking" in lines
        assert not any(line.startswith("v1.0.0") for line in lines)

    def test_no_changes_for_same_version(self):
        assert changes_between_versions("1.1.0", "1.1.0") == []

    def test_changelog_dict_is_plain(self):
        d = changelog_dict()
        assert d["1.0.0"]["changes"][0] == "Initial scoring algorithm"
        assert d["1.0.0"]["breaking_changes"] is False


class TestScoringMetadata:
    def test_metadata(self):
        now = datetime(2025, 3, 1, tzinfo=timezone.utc)
        meta = create_scoring_metadata(now)
        assert meta["scoring_algorithm_version"] == CURRENT_SCORING_VERSION
        assert meta["scored_at"] == now.isoformat()
        assert meta["scoring_features"]["precomputed_amenity_scores"] is True
