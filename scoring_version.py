"""
Scoring algorithm version registry.

Every stored bundle and snapshot records the version of the scoring rules
that produced its scores.  On load the stored version is checked against
the running code:

  - MAJOR: breaking changes that require re-scoring all stored data
  - MINOR: new scoring features that leave existing calculations intact
  - PATCH: bug fixes in scoring calculations

Bump CURRENT_SCORING_VERSION and add a SCORING_CHANGELOG entry whenever a
change alters score outputs.  Raise MIN_COMPATIBLE_VERSION when older
snapshots can no longer be trusted without a rescore.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Dict, List, Optional, Tuple

CURRENT_SCORING_VERSION = "1.1.1"
MIN_COMPATIBLE_VERSION = "1.0.0"


@dataclass(frozen=True)
class ChangelogEntry:
    date: str
    changes: Tuple[str, ...]
    breaking_changes: bool = False


SCORING_CHANGELOG: Dict[str, ChangelogEntry] = {
    "1.0.0": ChangelogEntry(
        date="2024-01-01",
        changes=(
            "Initial scoring algorithm",
            "Comparison scoring: comparison type, base value, margin, direction",
            "Score range: -1 to +1",
        ),
    ),
    "1.1.0": ChangelogEntry(
        date="2025-01-21",
        changes=(
            "Precomputed scores for amenity and residential rows",
            "Location grades derived from scored rows",
            "JSON round-trip keeps explicit null scores",
            "Scoring version tracking",
        ),
    ),
    "1.1.1": ChangelogEntry(
        date="2026-10-19",
        changes=(
            "Values on or beyond the margin band score exactly +1 / -1",
            "Margin band measured against the absolute baseline, so negative baselines keep +1 as favourable",
            "NaN and infinite provider values are unscoreable",
        ),
    ),
}


@dataclass(frozen=True)
class VersionCompatibility:
    compatible: bool
    message: str
    requires_rescore: bool

    def to_dict(self) -> dict:
        return {
            "compatible": self.compatible,
            "message": self.message,
            "requires_rescore": self.requires_rescore,
        }


def _parts(version: str) -> List[int]:
    out = []
    for piece in str(version).split("."):
        try:
            out.append(int(piece))
        except ValueError:
            out.append(0)
    return out


def compare_versions(a: str, b: str) -> int:
    """-1 if a < b, 0 if equal, 1 if a > b.  Missing parts count as 0."""
    pa, pb = _parts(a), _parts(b)
    for i in range(max(len(pa), len(pb))):
        x = pa[i] if i < len(pa) else 0
        y = pb[i] if i < len(pb) else 0
        if x < y:
            return -1
        if x > y:
            return 1
    return 0


def is_version_compatible(stored: Optional[str]) -> VersionCompatibility:
    if not stored:
        return VersionCompatibility(True, "No version recorded (pre-versioning snapshot)", False)

    if compare_versions(stored, MIN_COMPATIBLE_VERSION) < 0:
        return VersionCompatibility(
            False,
            f"Snapshot version {stored} is below minimum compatible version {MIN_COMPATIBLE_VERSION}",
            True,
        )

    if stored == CURRENT_SCORING_VERSION:
        return VersionCompatibility(True, "Snapshot uses current scoring version", False)

    if compare_versions(stored, CURRENT_SCORING_VERSION) < 0:
        return VersionCompatibility(
            True,
            f"Snapshot version {stored} is older than current {CURRENT_SCORING_VERSION} but compatible",
            False,
        )

    return VersionCompatibility(
        True,
        f"Snapshot version {stored} is newer than current {CURRENT_SCORING_VERSION}",
        False,
    )


def changes_between_versions(from_version: str, to_version: str) -> List[str]:
    """Changelog lines for versions in (from_version, to_version]."""
    lines: List[str] = []
    for version in sorted(SCORING_CHANGELOG, key=cmp_to_key(compare_versions)):
        if compare_versions(version, from_version) > 0 and compare_versions(version, to_version) <= 0:
            entry = SCORING_CHANGELOG[version]
            lines.append(f"v{version} ({entry.date}):")
            lines.extend(f"  - {change}" for change in entry.changes)
    return lines


def changelog_dict() -> Dict[str, dict]:
    return {
        version: {
            "date": entry.date,
            "changes": list(entry.changes),
            "breaking_changes": entry.breaking_changes,
        }
        for version, entry in SCORING_CHANGELOG.items()
    }


def create_scoring_metadata(now: Optional[datetime] = None) -> dict:
    """Metadata block stored alongside every scored bundle."""
    scored_at = (now or datetime.now(timezone.utc)).isoformat()
    return {
        "scoring_algorithm_version": CURRENT_SCORING_VERSION,
        "scored_at": scored_at,
        "scoring_features": {
            "precomputed_amenity_scores": True,
            "dynamic_omgeving_scores": True,
            "json_validation": True,
        },
    }


if CURRENT_SCORING_VERSION not in SCORING_CHANGELOG:
    raise ValueError(f"SCORING_CHANGELOG has no entry for {CURRENT_SCORING_VERSION}")
if compare_versions(MIN_COMPATIBLE_VERSION, CURRENT_SCORING_VERSION) > 0:
    raise ValueError("MIN_COMPATIBLE_VERSION is newer than CURRENT_SCORING_VERSION")
