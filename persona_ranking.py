"""
Persona ranking against one scored location.

Pipeline:
  1. extract_location_scores(): scored rows -> {subcategory: score}
  2. rank_personas(): multiplier x score per subcategory, summed per
     category and overall, then ranked twice over the same pass:
       - r-rank: order statistic of weighted_total, (N - pos + 1) / N
       - z-rank: population z-score of weighted_total
  3. calculate_connections() / calculate_scenarios(): group personas that
     share spaces and rank well together.

Unscoreable subcategories (score None) contribute 0; no persona is ever
dropped from the ranking.
"""

import logging
import math
import statistics
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from location_data import (
    GeographicLevel,
    SourceType,
    UnifiedLocationData,
    UnifiedRow,
)
from personas import (
    CATEGORIES,
    HOUSING_PERSONAS,
    INCOME_BRACKET_HIGH,
    INCOME_BRACKET_LOW,
    INCOME_BRACKET_MID,
    INCOME_INDICATOR_KEY,
    SHARED_SPACES,
    Persona,
    SharedSpace,
    subcategory_for_title,
)

logger = logging.getLogger(__name__)

INCOME_LOW_RATIO = 0.8
INCOME_HIGH_RATIO = 1.2

SCENARIO_COUNT = 3
SCENARIO_CANDIDATES = 5   # strongest connections considered per anchor
SCENARIO_MEMBERS = 3      # connections kept next to the anchor


# =============================================================================
# Location scores
# =============================================================================

def income_bracket_scores(value: Optional[float], baseline: Optional[float]) -> Dict[str, Optional[float]]:
    """Split the average-income indicator into three exclusive brackets.

    The bracket containing value/baseline scores +1, the other two -1.
    All three are None when either number is missing or the baseline is 0.
    """
    if value is None or baseline is None or baseline == 0:
        return {INCOME_BRACKET_LOW: None, INCOME_BRACKET_MID: None, INCOME_BRACKET_HIGH: None}
    ratio = value / baseline
    if ratio < INCOME_LOW_RATIO:
        match = INCOME_BRACKET_LOW
    elif ratio > INCOME_HIGH_RATIO:
        match = INCOME_BRACKET_HIGH
    else:
        match = INCOME_BRACKET_MID
    return {
        bracket: (1.0 if bracket == match else -1.0)
        for bracket in (INCOME_BRACKET_LOW, INCOME_BRACKET_MID, INCOME_BRACKET_HIGH)
    }


def _income_baseline(row: UnifiedRow, national: Dict[str, UnifiedRow]) -> Optional[float]:
    if row.scoring is not None and row.scoring.base_value is not None:
        return row.scoring.base_value
    nat = national.get(row.key)
    return nat.relative if nat else None


def extract_location_scores(bundle: UnifiedLocationData) -> Dict[str, Optional[float]]:
    """Scores per persona subcategory for the most specific data available.

    Demographics, health and safety use neighborhood, else district, else
    municipality.  Livability only exists at municipality level.  A None
    score never overwrites a real score for the same subcategory.
    """
    scores: Dict[str, Optional[float]] = {}

    def put(name: str, value: Optional[float]) -> None:
        if value is not None or name not in scores:
            scores[name] = value

    def add(rows: Iterable[UnifiedRow], national: Dict[str, UnifiedRow]) -> None:
        for row in rows:
            if row.key == INCOME_INDICATOR_KEY:
                for name, value in income_bracket_scores(row.relative, _income_baseline(row, national)).items():
                    put(name, value)
                continue
            put(subcategory_for_title(row.title), row.calculated_score)

    for source in (SourceType.DEMOGRAPHICS, SourceType.HEALTH, SourceType.LIVABILITY, SourceType.SAFETY):
        levels = bundle.levels_for(source)
        national = {r.key: r for r in levels.national}
        if source == SourceType.LIVABILITY:
            rows = levels.for_level(GeographicLevel.MUNICIPALITY)
        else:
            rows = levels.best_available()
        add(rows, national)

    add(bundle.amenities, {})
    if bundle.residential is not None and bundle.residential.has_data:
        add(bundle.residential.rows, {})
    return scores


# =============================================================================
# Ranking
# =============================================================================

@dataclass(frozen=True)
class DetailedScore:
    category: str
    subcategory: str
    characteristic_type: str
    multiplier: int
    base_score: Optional[float]
    weighted_score: float


@dataclass
class PersonaScore:
    persona_id: str
    persona_name: str
    category_scores: Dict[str, float]
    weighted_total: float
    max_possible_score: float
    r_rank: float = 0.0
    z_rank: float = 0.0
    r_rank_position: int = 0
    z_rank_position: int = 0
    detailed_scores: List[DetailedScore] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "persona_id": self.persona_id,
            "persona_name": self.persona_name,
            "category_scores": dict(self.category_scores),
            "weighted_total": self.weighted_total,
            "max_possible_score": self.max_possible_score,
            "r_rank": self.r_rank,
            "z_rank": self.z_rank,
            "r_rank_position": self.r_rank_position,
            "z_rank_position": self.z_rank_position,
            "detailed_scores": [
                {
                    "category": d.category,
                    "subcategory": d.subcategory,
                    "characteristic_type": d.characteristic_type,
                    "multiplier": d.multiplier,
                    "base_score": d.base_score,
                    "weighted_score": d.weighted_score,
                }
                for d in self.detailed_scores
            ],
        }


def score_persona(persona: Persona, location_scores: Dict[str, Optional[float]]) -> PersonaScore:
    category_scores = {c: 0.0 for c in CATEGORIES}
    details: List[DetailedScore] = []
    max_possible = 0.0
    for w in persona.weights:
        if w.multiplier == 0:
            continue
        max_possible += abs(w.multiplier)
        base = location_scores.get(w.subcategory)
        weighted = w.multiplier * base if base is not None else 0.0
        category_scores[w.category] += weighted
        details.append(DetailedScore(
            w.category, w.subcategory, w.characteristic_type, w.multiplier, base, weighted,
        ))
    return PersonaScore(
        persona_id=persona.id,
        persona_name=persona.name,
        category_scores=category_scores,
        weighted_total=sum(category_scores.values()),
        max_possible_score=max_possible,
        detailed_scores=details,
    )


def _positions(values: Sequence[float]) -> List[int]:
    """1-based descending positions; ties keep input order."""
    order = sorted(range(len(values)), key=lambda i: -values[i])
    positions = [0] * len(values)
    for pos, i in enumerate(order, start=1):
        positions[i] = pos
    return positions


def z_scores(totals: Sequence[float]) -> List[float]:
    if not totals:
        return []
    mean = statistics.fmean(totals)
    std = statistics.pstdev(totals)
    if std == 0:
        return [0.0 for _ in totals]
    return [(t - mean) / std for t in totals]


def rank_personas(
    location_scores: Dict[str, Optional[float]],
    personas: Sequence[Persona] = HOUSING_PERSONAS,
) -> List[PersonaScore]:
    """Score and rank every persona; result ordered by r-rank position."""
    scores = [score_persona(p, location_scores) for p in personas]
    n = len(scores)
    if n == 0:
        return []

    totals = [s.weighted_total for s in scores]
    r_positions = _positions(totals)
    zs = z_scores(totals)
    z_positions = _positions(zs)
    for s, r_pos, z, z_pos in zip(scores, r_positions, zs, z_positions):
        s.r_rank_position = r_pos
        s.r_rank = (n - r_pos + 1) / n
        s.z_rank = z
        s.z_rank_position = z_pos

    ranked = sorted(scores, key=lambda s: s.r_rank_position)
    logger.debug(
        "Ranked %d personas; top=%s (%.2f)", n, ranked[0].persona_id, ranked[0].weighted_total,
    )
    return ranked


def verify_rank_consistency(scores: Sequence[PersonaScore], expected_ids: Optional[Iterable[str]] = None) -> None:
    """Raise ValueError unless r-rank and z-rank come from the same pass."""
    n = len(scores)
    ids = [s.persona_id for s in scores]
    if len(set(ids)) != n:
        raise ValueError("Duplicate persona ids in ranking")
    if expected_ids is not None and set(expected_ids) != set(ids):
        raise ValueError("Ranking does not cover the expected persona set")

    expected_positions = set(range(1, n + 1))
    if {s.r_rank_position for s in scores} != expected_positions:
        raise ValueError("r-rank positions are not a permutation of 1..N")
    if {s.z_rank_position for s in scores} != expected_positions:
        raise ValueError("z-rank positions are not a permutation of 1..N")

    totals = [s.weighted_total for s in scores]
    for s, z in zip(scores, z_scores(totals)):
        if not math.isclose(s.z_rank, z, rel_tol=1e-9, abs_tol=1e-9):
            raise ValueError(f"z-rank of {s.persona_id} does not match its weighted total")
        if not math.isclose(s.r_rank, (n - s.r_rank_position + 1) / n, abs_tol=1e-12):
            raise ValueError(f"r-rank of {s.persona_id} does not match its position")

    by_r = sorted(scores, key=lambda s: s.r_rank_position)
    by_z = sorted(scores, key=lambda s: s.z_rank_position)
    for prev, cur in zip(by_r, by_r[1:]):
        if cur.weighted_total > prev.weighted_total:
            raise ValueError("r-rank order disagrees with weighted totals")
    for prev, cur in zip(by_z, by_z[1:]):
        if cur.z_rank > prev.z_rank:
            raise ValueError("z-rank order disagrees with z-scores")


# =============================================================================
# Connections and scenarios
# =============================================================================

@dataclass(frozen=True)
class Connection:
    from_index: int
    to_index: int
    count: int


def calculate_connections(
    personas: Sequence[Persona] = HOUSING_PERSONAS,
    spaces: Sequence[SharedSpace] = SHARED_SPACES,
) -> List[Connection]:
    """Number of shared spaces per persona pair (indices into *personas*)."""
    index_by_name = {p.name: i for i, p in enumerate(personas)}
    counts: Dict[Tuple[int, int], int] = {}
    for space in spaces:
        if space.for_everyone:
            members = list(range(len(personas)))
        else:
            members = [index_by_name[g] for g in space.target_groups if g in index_by_name]
        for a_pos, a in enumerate(members):
            for b in members[a_pos + 1:]:
                pair = (a, b) if a < b else (b, a)
                counts[pair] = counts.get(pair, 0) + 1
    return [Connection(a, b, n) for (a, b), n in sorted(counts.items())]


def top_connections_for_persona(
    index: int,
    connections: Iterable[Connection],
    limit: int = 10,
) -> List[Tuple[int, int]]:
    """(other persona index, shared count), strongest first."""
    mine = [
        (c.to_index if c.from_index == index else c.from_index, c.count)
        for c in connections
        if index in (c.from_index, c.to_index)
    ]
    mine.sort(key=lambda pair: -pair[1])
    return mine[:limit]


def calculate_scenarios(
    personas: Sequence[Persona],
    scores: Sequence[PersonaScore],
    connections: Sequence[Connection],
    count: int = SCENARIO_COUNT,
) -> List[List[int]]:
    """Build up to *count* scenarios as lists of r-rank positions.

    Each scenario is [anchor, up to 3 connected personas].  The anchor is
    the best-ranked persona that has not appeared in an earlier scenario,
    either as anchor or as member.  Its strongest connections are sorted by
    r-rank and the best three join it.  Those members are drawn from the
    connection list without that check, so a persona can be a member of
    more than one scenario; it just cannot anchor a later one.
    """
    index_by_id = {p.id: i for i, p in enumerate(personas)}
    score_by_id = {s.persona_id: s for s in scores}
    ordered = sorted(scores, key=lambda s: s.r_rank_position)
    excluded = set()
    scenarios: List[List[int]] = []

    for _ in range(count):
        available = [s for s in ordered if s.persona_id not in excluded]
        if not available:
            scenarios.append([])
            continue
        anchor = available[0]
        anchor_index = index_by_id.get(anchor.persona_id)
        if anchor_index is None:
            scenarios.append([])
            continue

        members = []
        for other_index, _count in top_connections_for_persona(anchor_index, connections, SCENARIO_CANDIDATES):
            other = score_by_id.get(personas[other_index].id)
            if other is not None:
                members.append(other)
        members.sort(key=lambda s: s.r_rank_position)
        members = members[:SCENARIO_MEMBERS]

        scenarios.append([anchor.r_rank_position] + [m.r_rank_position for m in members])
        excluded.add(anchor.persona_id)
        excluded.update(m.persona_id for m in members)
    return scenarios


@dataclass
class Scenario:
    name: str
    personas: List[PersonaScore]
    mean_r_rank: Optional[float]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "positions": [p.r_rank_position for p in self.personas],
            "persona_ids": [p.persona_id for p in self.personas],
            "mean_r_rank": self.mean_r_rank,
        }


def build_scenario(name: str, positions: Sequence[int], scores: Sequence[PersonaScore]) -> Scenario:
    by_position = {s.r_rank_position: s for s in scores}
    members = [by_position[pos] for pos in positions if pos in by_position]
    mean = statistics.fmean(m.r_rank for m in members) if members else None
    return Scenario(name=name, personas=members, mean_r_rank=mean)


def build_scenarios(
    scores: Sequence[PersonaScore],
    personas: Sequence[Persona] = HOUSING_PERSONAS,
    spaces: Sequence[SharedSpace] = SHARED_SPACES,
) -> List[Scenario]:
    connections = calculate_connections(personas, spaces)
    groups = calculate_scenarios(personas, scores, connections)
    return [build_scenario(f"Scenario {i}", group, scores) for i, group in enumerate(groups, start=1)]
