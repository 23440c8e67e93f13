"""
Amenity category scoring and conversion to unified rows.

Input is one AmenityCategoryResult per category: how many places of that
kind were found around the address and how far away each one is.  Each
category becomes two municipality-level rows, one for the count and one for
the 250 m proximity bonus, both carrying a precomputed score.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from location_data import (
    AreaDescriptor,
    COMPARISON_ABSOLUTE,
    DIRECTION_POSITIVE,
    GeographicLevel,
    ScoringConfig,
    SourceType,
    UnifiedRow,
)

logger = logging.getLogger(__name__)

PROXIMITY_THRESHOLD_M = 250

COUNT_SCORING = ScoringConfig(
    comparison_type=COMPARISON_ABSOLUTE, margin=50, base_value=1, direction=DIRECTION_POSITIVE,
)
PROXIMITY_SCORING = ScoringConfig(
    comparison_type=COMPARISON_ABSOLUTE, margin=50, base_value=0, direction=DIRECTION_POSITIVE,
)


# =============================================================================
# Category catalogue
# =============================================================================

@dataclass(frozen=True)
class AmenityCategory:
    category_id: str
    name: str


AMENITY_CATEGORIES: Tuple[AmenityCategory, ...] = (
    AmenityCategory("zorg_primair", "Zorg (Huisarts & Apotheek)"),
    AmenityCategory("zorg_paramedisch", "Zorg (Paramedische voorzieningen)"),
    AmenityCategory("openbaar_vervoer", "Openbaar vervoer (halte)"),
    AmenityCategory("mobiliteit_parkeren", "Mobiliteit & Parkeren"),
    AmenityCategory("onderwijs_basisschool", "Onderwijs (Basisschool)"),
    AmenityCategory("onderwijs_voortgezet", "Onderwijs (Voortgezet onderwijs)"),
    AmenityCategory("onderwijs_hoger", "Onderwijs (Hoger onderwijs)"),
    AmenityCategory("kinderopvang", "Kinderopvang & Opvang"),
    AmenityCategory("winkels_dagelijks", "Winkels (Dagelijkse boodschappen)"),
    AmenityCategory("winkels_overig", "Winkels (Overige retail)"),
    AmenityCategory("restaurants_budget", "Budget Restaurants (€)"),
    AmenityCategory("restaurants_midrange", "Mid-range Restaurants (€€€)"),
    AmenityCategory("restaurants_upscale", "Upscale Restaurants (€€€€-€€€€€)"),
    AmenityCategory("cafes_avond", "Cafés en avond programma"),
    AmenityCategory("sport_faciliteiten", "Sport faciliteiten"),
    AmenityCategory("sportschool", "Sportschool / Fitnesscentrum"),
    AmenityCategory("groen_recreatie", "Groen & Recreatie"),
    AmenityCategory("cultuur_entertainment", "Cultuur & Entertainment"),
    AmenityCategory("wellness", "Wellness & Recreatie"),
    AmenityCategory("zakelijke_diensten", "Zakelijke diensten"),
)

AMENITY_CATEGORY_BY_ID: Dict[str, AmenityCategory] = {c.category_id: c for c in AMENITY_CATEGORIES}


# =============================================================================
# Inputs and results
# =============================================================================

@dataclass(frozen=True)
class AmenityPlace:
    name: str = ""
    distance_m: Optional[float] = None


@dataclass(frozen=True)
class AmenityCategoryResult:
    category_id: str
    places: Tuple[AmenityPlace, ...] = ()
    count: Optional[int] = None  # when the search reports a total beyond the returned places

    @property
    def total(self) -> int:
        return self.count if self.count is not None else len(self.places)


@dataclass
class AmenityScore:
    category_id: str
    category_name: str
    count: int
    count_score: float        # -1 .. 1
    proximity_bonus: int      # 0 or 1
    combined_score: float     # 0 .. 1
    closest_distance_m: Optional[float] = None


# =============================================================================
# Scoring
# =============================================================================

def calculate_count_score(count: int) -> float:
    """0 -> -1, 1 -> 0, 2..5 -> linear to 1, 6+ -> 1."""
    if count <= 0:
        return -1.0
    if count == 1:
        return 0.0
    if count <= 5:
        return (count - 1) / 4
    return 1.0


def calculate_proximity_bonus(places: Iterable[AmenityPlace], threshold_m: float = PROXIMITY_THRESHOLD_M) -> int:
    for place in places:
        if place.distance_m is not None and place.distance_m <= threshold_m:
            return 1
    return 0


def calculate_amenity_score(result: AmenityCategoryResult) -> AmenityScore:
    category = AMENITY_CATEGORY_BY_ID.get(result.category_id)
    name = category.name if category else result.category_id
    count = result.total
    count_score = calculate_count_score(count)
    bonus = calculate_proximity_bonus(result.places)
    distances = [p.distance_m for p in result.places if p.distance_m is not None]
    return AmenityScore(
        category_id=result.category_id,
        category_name=name,
        count=count,
        count_score=count_score,
        proximity_bonus=bonus,
        # count score rescaled to 0..1, then averaged with the bonus
        combined_score=((count_score + 1) / 2 + bonus) / 2,
        closest_distance_m=min(distances) if distances else None,
    )


def calculate_amenity_scores(results: Iterable[AmenityCategoryResult]) -> List[AmenityScore]:
    return [calculate_amenity_score(r) for r in results]


# =============================================================================
# Row conversion
# =============================================================================

def count_key(category_id: str) -> str:
    return f"amenity_{category_id}_count"


def proximity_key(category_id: str) -> str:
    return f"amenity_{category_id}_proximity"


def convert_amenities_to_rows(
    scores: Iterable[AmenityScore],
    municipality: AreaDescriptor,
) -> List[UnifiedRow]:
    """Two municipality rows per category, count first."""
    rows: List[UnifiedRow] = []
    for s in scores:
        count_title = f"{s.category_name} - Aantal"
        proximity_title = f"{s.category_name} - Nabijheid ({PROXIMITY_THRESHOLD_M}m)"
        rows.append(UnifiedRow(
            source=SourceType.AMENITIES,
            geographic_level=GeographicLevel.MUNICIPALITY,
            geographic_code=municipality.code,
            geographic_name=municipality.name,
            key=count_key(s.category_id),
            title=count_title,
            title_nl=count_title,
            title_en=f"{s.category_name} - Count",
            original_value=s.count,
            absolute=float(s.count),
            relative=None,
            unit="count",
            scoring=COUNT_SCORING,
            calculated_score=s.count_score,
        ))
        rows.append(UnifiedRow(
            source=SourceType.AMENITIES,
            geographic_level=GeographicLevel.MUNICIPALITY,
            geographic_code=municipality.code,
            geographic_name=municipality.name,
            key=proximity_key(s.category_id),
            title=proximity_title,
            title_nl=proximity_title,
            title_en=f"{s.category_name} - Proximity ({PROXIMITY_THRESHOLD_M}m)",
            original_value=s.closest_distance_m,
            absolute=float(s.proximity_bonus),
            relative=None,
            unit="bonus",
            scoring=PROXIMITY_SCORING,
            calculated_score=float(s.proximity_bonus),
        ))
    return rows


def amenity_scores_from_rows(rows: Iterable[UnifiedRow]) -> List[AmenityScore]:
    """Rebuild AmenityScore records from serialized amenity rows."""
    by_id: Dict[str, Dict[str, UnifiedRow]] = {}
    order: List[str] = []
    for row in rows:
        if row.source != SourceType.AMENITIES or not row.key.startswith("amenity_"):
            continue
        stem, _, kind = row.key.rpartition("_")
        category_id = stem[len("amenity_"):]
        if category_id not in by_id:
            by_id[category_id] = {}
            order.append(category_id)
        by_id[category_id][kind] = row

    scores: List[AmenityScore] = []
    for category_id in order:
        pair = by_id[category_id]
        count_row = pair.get("count")
        prox_row = pair.get("proximity")
        count = int(count_row.absolute or 0) if count_row else 0
        bonus = int(prox_row.absolute or 0) if prox_row else 0
        category = AMENITY_CATEGORY_BY_ID.get(category_id)
        count_score = calculate_count_score(count)
        scores.append(AmenityScore(
            category_id=category_id,
            category_name=category.name if category else category_id,
            count=count,
            count_score=count_score,
            proximity_bonus=bonus,
            combined_score=((count_score + 1) / 2 + bonus) / 2,
            closest_distance_m=prox_row.original_value if prox_row else None,
        ))
    return scores
