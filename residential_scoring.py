"""
Residential-market scoring from comparable sold houses.

Reference houses are bucketed three ways (urban typology, living area,
transaction price) and each bucket count is scored on a fixed scale:
0 houses -> -1, 10 -> 0, 20+ -> 1.  Buckets become municipality-level rows
with the score precomputed, so they survive serialization without the
underlying house list.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from location_data import (
    AreaDescriptor,
    COMPARISON_ABSOLUTE,
    DIRECTION_POSITIVE,
    GeographicLevel,
    ReferenceHouse,
    ResidentialPayload,
    ScoringConfig,
    SourceType,
    UnifiedRow,
)

# count 10 -> 0, +/-10 saturates; identical to clamp((count - 10) / 10)
BUCKET_SCORING = ScoringConfig(
    comparison_type=COMPARISON_ABSOLUTE, margin=100, base_value=10, direction=DIRECTION_POSITIVE,
)

# A house type may appear in more than one typology list.
TYPOLOGY_HOUSE_TYPES: Dict[str, frozenset] = {
    "laag_stedelijk": frozenset({
        "Eengezinswoning",
        "Vrijstaande woning",
        "Vrijstaande doelgroepwoning",
        "Vrijstaande recreatiewoning",
        "2 onder 1 kap woning",
        "Geschakelde 2 onder 1 kapwoning",
        "Geschakelde woning",
        "Tussen/rijwoning",
        "Tussen/rij doelgroepwoning",
        "Hoekwoning",
        "Eindwoning",
    }),
    "rand_stedelijk": frozenset({
        "Tussen/rijwoning",
        "Tussen/rij doelgroepwoning",
        "Hoekwoning",
        "Eindwoning",
        "Meergezinswoning",
        "Benedenwoning",
        "Bovenwoning",
        "Portiekwoning",
        "Galerijflat",
        "Maisonnette",
    }),
    "hoog_stedelijk": frozenset({
        "Portiekwoning",
        "Galerijflat",
        "Maisonnette",
        "Portiekflat",
        "Corridorflat",
    }),
}

SMALL_AREA_M2 = 60
LARGE_AREA_M2 = 110
LOW_PRICE_EUR = 350_000
HIGH_PRICE_EUR = 525_000


@dataclass(frozen=True)
class BucketScore:
    key: str
    title: str
    count: int
    score: float


# (row key, display title) in output order
_TYPOLOGY_BUCKETS = (
    ("typologie_laag_stedelijk", "Laag stedelijk", "laag_stedelijk"),
    ("typologie_rand_stedelijk", "Rand stedelijk", "rand_stedelijk"),
    ("typologie_hoog_stedelijk", "Hoog stedelijk", "hoog_stedelijk"),
)
_SIZE_BUCKETS = (
    ("woonoppervlak_klein", "Klein (< 60m²)"),
    ("woonoppervlak_midden", "Midden (60-110m²)"),
    ("woonoppervlak_groot", "Groot (> 110m²)"),
)
_PRICE_BUCKETS = (
    ("transactieprijs_laag", "Laag (< €350k)"),
    ("transactieprijs_midden", "Midden (€350k-€525k)"),
    ("transactieprijs_hoog", "Hoog (> €525k)"),
)


def bucket_score(count: int) -> float:
    return min(1.0, max(-1.0, (count - 10) / 10))


def parse_price_range(price_range: str) -> Optional[float]:
    """Midpoint of a "min-max" euro range, or None when it won't parse."""
    if not price_range:
        return None
    parts = str(price_range).split("-")
    if len(parts) != 2:
        return None
    try:
        low = int(parts[0].strip())
        high = int(parts[1].strip())
    except ValueError:
        return None
    return (low + high) / 2


def _typology_scores(houses: Sequence[ReferenceHouse]) -> List[BucketScore]:
    out = []
    for key, title, bucket in _TYPOLOGY_BUCKETS:
        types = TYPOLOGY_HOUSE_TYPES[bucket]
        count = sum(1 for h in houses if h.house_type in types)
        out.append(BucketScore(key, title, count, bucket_score(count)))
    return out


def _size_scores(houses: Sequence[ReferenceHouse]) -> List[BucketScore]:
    counts = [0, 0, 0]
    for h in houses:
        area = h.inner_surface_area or 0
        if area < SMALL_AREA_M2:
            counts[0] += 1
        elif area <= LARGE_AREA_M2:
            counts[1] += 1
        else:
            counts[2] += 1
    return [
        BucketScore(key, title, n, bucket_score(n))
        for (key, title), n in zip(_SIZE_BUCKETS, counts)
    ]


def _price_scores(houses: Sequence[ReferenceHouse]) -> List[BucketScore]:
    counts = [0, 0, 0]
    for h in houses:
        price = parse_price_range(h.transaction_price)
        if price is None:
            continue
        if price < LOW_PRICE_EUR:
            counts[0] += 1
        elif price <= HIGH_PRICE_EUR:
            counts[1] += 1
        else:
            counts[2] += 1
    return [
        BucketScore(key, title, n, bucket_score(n))
        for (key, title), n in zip(_PRICE_BUCKETS, counts)
    ]


def _mean(values: Iterable[float]) -> Optional[int]:
    values = list(values)
    if not values:
        return None
    return int(sum(values) / len(values) + 0.5)


def calculate_averages(houses: Sequence[ReferenceHouse]) -> Dict[str, Optional[int]]:
    """Display-only averages; non-positive and unparseable values are ignored."""
    prices = [parse_price_range(h.transaction_price) for h in houses]
    indexed = [parse_price_range(h.indexed_transaction_price) for h in houses]
    return {
        "bouwjaar": _mean(h.build_year for h in houses if h.build_year and h.build_year > 0),
        "woonoppervlakte": _mean(h.inner_surface_area for h in houses if h.inner_surface_area > 0),
        "perceeloppervlakte": _mean(h.outer_surface_area for h in houses if h.outer_surface_area > 0),
        "inhoud": _mean(h.volume for h in houses if h.volume is not None and h.volume > 0),
        "transactieprijs": _mean(p for p in prices if p is not None),
        "geindexeerde_transactieprijs": _mean(p for p in indexed if p is not None),
    }


def calculate_residential_scores(houses: Sequence[ReferenceHouse]) -> Dict[str, object]:
    return {
        "typologie": _typology_scores(houses),
        "woonoppervlak": _size_scores(houses),
        "transactieprijs": _price_scores(houses),
        "averages": calculate_averages(houses),
    }


def _scores_to_dict(scores: Dict[str, object]) -> Dict[str, object]:
    out: Dict[str, object] = {}
    for group in ("typologie", "woonoppervlak", "transactieprijs"):
        out[group] = [
            {"key": b.key, "title": b.title, "count": b.count, "score": b.score}
            for b in scores[group]
        ]
    out["averages"] = dict(scores["averages"])
    return out


def convert_residential_to_rows(
    scores: Dict[str, object],
    municipality: AreaDescriptor,
    total_houses: int,
) -> List[UnifiedRow]:
    rows: List[UnifiedRow] = []
    for group in ("typologie", "woonoppervlak", "transactieprijs"):
        for b in scores[group]:
            rows.append(UnifiedRow(
                source=SourceType.RESIDENTIAL,
                geographic_level=GeographicLevel.MUNICIPALITY,
                geographic_code=municipality.code,
                geographic_name=municipality.name,
                key=b.key,
                title=b.title,
                title_nl=b.title,
                original_value=b.count,
                absolute=float(b.count),
                relative=(b.count / total_houses * 100) if total_houses else None,
                unit="woningen",
                scoring=BUCKET_SCORING,
                calculated_score=b.score,
            ))
    return rows


def build_residential_payload(
    houses: Optional[Sequence[ReferenceHouse]],
    municipality: AreaDescriptor,
) -> ResidentialPayload:
    """Score reference houses and package them for the location bundle."""
    houses = list(houses or [])
    if not houses:
        return ResidentialPayload(has_data=False)
    scores = calculate_residential_scores(houses)
    return ResidentialPayload(
        has_data=True,
        reference_houses=houses,
        scores=_scores_to_dict(scores),
        rows=convert_residential_to_rows(scores, municipality, len(houses)),
    )
