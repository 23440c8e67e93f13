"""
Location grades on the Dutch 1-10 scale.

Five categories compare a location with the national average:

  betaalbaarheid   residential price/size buckets + income
  veiligheid       registered crime + safety perception
  gezondheid       physical, lifestyle and mental health
  leefbaarheid     environment, social cohesion, nuisance
  voorzieningen    amenity counts and proximity

Each category is a weighted mean of already-scored rows (-1..1), renormalized
over the metrics that actually have a score, then mapped to a grade:
-1 -> 1.0, 0 -> 5.5, +1 -> 10.0.

Row scores are already direction-corrected by the scoring engine, so only
residential buckets (scored on count, not on desirability) carry an
explicit inversion here.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from amenity_scoring import AmenityScore, amenity_scores_from_rows
from location_data import GeographicLevel, SourceType, UnifiedLocationData, UnifiedRow

logger = logging.getLogger(__name__)

NEUTRAL_GRADE = 5.5
GRADE_SPAN = 4.5


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class GradeMetric:
    key: str
    source: SourceType
    weight: float
    invert: bool = False


@dataclass(frozen=True)
class GradeCategory:
    id: str
    name_nl: str
    name_en: str
    metrics: Tuple[GradeMetric, ...]


_DEM, _HEA, _LIV, _SAF, _RES = (
    SourceType.DEMOGRAPHICS, SourceType.HEALTH, SourceType.LIVABILITY, SourceType.SAFETY, SourceType.RESIDENTIAL,
)

BETAALBAARHEID = GradeCategory("betaalbaarheid", "Betaalbaarheid", "Affordability", (
    # housing prices
    GradeMetric("transactieprijs_laag", _RES, 0.20),
    GradeMetric("transactieprijs_midden", _RES, 0.15),
    GradeMetric("transactieprijs_hoog", _RES, 0.15, invert=True),
    # income
    GradeMetric("GemiddeldInkomenPerInwoner_72", _DEM, 0.15),
    GradeMetric("HuishoudensMetEenLaagInkomen_78", _DEM, 0.15),
    # housing variety
    GradeMetric("woonoppervlak_klein", _RES, 0.10),
    GradeMetric("woonoppervlak_midden", _RES, 0.10),
))

VEILIGHEID = GradeCategory("veiligheid", "Veiligheid", "Safety", (
    # violent crime
    GradeMetric("Crime_1.4.5", _SAF, 0.12),
    GradeMetric("Crime_1.4.4", _SAF, 0.08),
    GradeMetric("Crime_1.4.6", _SAF, 0.08),
    GradeMetric("Crime_1.4.3", _SAF, 0.07),
    # property crime
    GradeMetric("Crime_1.1.1", _SAF, 0.15),
    GradeMetric("Crime_1.2.1", _SAF, 0.05),
    GradeMetric("Crime_1.2.2", _SAF, 0.05),
    GradeMetric("Crime_2.2.1", _SAF, 0.05),
    # perception
    GradeMetric("VoeltZichVaakOnveilig_44", _LIV, 0.10),
    GradeMetric("SAvondsOpStraatInBuurtOnveilig_52", _LIV, 0.10),
    # traffic and other
    GradeMetric("Crime_1.3.1", _SAF, 0.08),
    GradeMetric("Crime_2.1.1", _SAF, 0.07),
))

GEZONDHEID = GradeCategory("gezondheid", "Gezondheid", "Health", (
    GradeMetric("ErvarenGezondheidGoedZeerGoed_4", _HEA, 0.15),
    GradeMetric("Overgewicht_9", _HEA, 0.08),
    GradeMetric("ErnstigOvergewicht_10", _HEA, 0.07),
    GradeMetric("BeperktVanwegeGezondheid_17", _HEA, 0.10),
    GradeMetric("VoldoetAanBeweegrichtlijn_5", _HEA, 0.10),
    GradeMetric("Roker_11", _HEA, 0.08),
    GradeMetric("ZwareDrinker_14", _HEA, 0.07),
    GradeMetric("HoogRisicoOpAngstOfDepressie_25", _HEA, 0.10),
    GradeMetric("ErnstigZeerErnstigEenzaam_28", _HEA, 0.08),
    GradeMetric("PsychischeKlachten_20", _HEA, 0.07),
    GradeMetric("ZeerHogeVeerkracht_22", _HEA, 0.05),
    GradeMetric("Vrijwilligerswerk_32", _HEA, 0.05),
))

LEEFBAARHEID = GradeCategory("leefbaarheid", "Leefbaarheid", "Livability", (
    GradeMetric("RapportcijferLeefbaarheidWoonbuurt_18", _LIV, 0.12),
    GradeMetric("FysiekeVoorzieningenSchaalscore_6", _LIV, 0.08),
    GradeMetric("OnderhoudStoepenStratenEnPleintjes_1", _LIV, 0.05),
    GradeMetric("Straatverlichting_3", _LIV, 0.05),
    GradeMetric("SocialeCohesieSchaalscore_15", _LIV, 0.12),
    GradeMetric("GezelligeBuurtWaarMenElkaarHelpt_9", _LIV, 0.08),
    GradeMetric("VoelMijThuisBijMensenInDezeBuurt_10", _LIV, 0.05),
    GradeMetric("MensenGaanPrettigMetElkaarOm_8", _LIV, 0.05),
    GradeMetric("EenOfMeerVormenFysiekeVerloedering_26", _LIV, 0.08),
    GradeMetric("EenOfMeerVormenVanSocialeOverlast_34", _LIV, 0.08),
    GradeMetric("EenOfMeerVormenVanMilieuoverlast_42", _LIV, 0.05),
    GradeMetric("EenOfMeerVormenVanVerkeersoverlast_38", _LIV, 0.04),
    GradeMetric("VooruitGegaan_16", _LIV, 0.08),
    GradeMetric("AchteruitGegaan_17", _LIV, 0.07),
))

ROW_CATEGORIES: Tuple[GradeCategory, ...] = (BETAALBAARHEID, VEILIGHEID, GEZONDHEID, LEEFBAARHEID)

VOORZIENINGEN_WEIGHTS: Dict[str, float] = {
    # essential services
    "zorg_primair": 0.12,
    "openbaar_vervoer": 0.12,
    "winkels_dagelijks": 0.12,
    "onderwijs_basisschool": 0.09,
    # family and care
    "kinderopvang": 0.08,
    "onderwijs_voortgezet": 0.06,
    "zorg_paramedisch": 0.06,
    # leisure
    "restaurants_budget": 0.02,
    "restaurants_midrange": 0.02,
    "restaurants_upscale": 0.02,
    "sport_faciliteiten": 0.03,
    "sportschool": 0.03,
    "groen_recreatie": 0.04,
    "cultuur_entertainment": 0.04,
    # convenience
    "winkels_overig": 0.05,
    "mobiliteit_parkeren": 0.05,
    "zakelijke_diensten": 0.05,
}


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class CategoryGrade:
    id: str
    name_nl: str
    name_en: str
    grade: float
    raw_score: float
    metrics_used: int
    metrics_total: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name_nl": self.name_nl,
            "name_en": self.name_en,
            "grade": self.grade,
            "raw_score": self.raw_score,
            "metrics_used": self.metrics_used,
            "metrics_total": self.metrics_total,
        }


@dataclass(frozen=True)
class LocationGrades:
    categories: Tuple[CategoryGrade, ...]
    overall: float

    def by_id(self, category_id: str) -> Optional[CategoryGrade]:
        for c in self.categories:
            if c.id == category_id:
                return c
        return None

    def to_dict(self) -> dict:
        out = {c.id: c.to_dict() for c in self.categories}
        out["overall"] = self.overall
        return out


# =============================================================================
# Grade scale
# =============================================================================

def _round1(x: float) -> float:
    # half-up; grades are always positive. round() would use banker's rounding
    return int(x * 10 + 0.5) / 10


def raw_score_to_grade(raw: float) -> float:
    clamped = max(-1.0, min(1.0, raw))
    return _round1(clamped * GRADE_SPAN + NEUTRAL_GRADE)


def grade_to_raw_score(grade: float) -> float:
    clamped = max(1.0, min(10.0, grade))
    return (clamped - NEUTRAL_GRADE) / GRADE_SPAN


# =============================================================================
# Calculation
# =============================================================================

def _metric_rows(bundle: UnifiedLocationData, source: SourceType) -> List[UnifiedRow]:
    if source == SourceType.RESIDENTIAL:
        if bundle.residential is None or not bundle.residential.has_data:
            return []
        return list(bundle.residential.rows)
    if source == SourceType.LIVABILITY:
        return bundle.livability.for_level(GeographicLevel.MUNICIPALITY)
    return bundle.levels_for(source).best_available()


def calculate_category_grade(category: GradeCategory, bundle: UnifiedLocationData) -> CategoryGrade:
    rows_by_source = {
        source: {r.key: r for r in _metric_rows(bundle, source)}
        for source in {m.source for m in category.metrics}
    }
    weighted_sum = 0.0
    total_weight = 0.0
    used = 0
    for metric in category.metrics:
        row = rows_by_source[metric.source].get(metric.key)
        if row is None or row.calculated_score is None:
            continue
        s = -row.calculated_score if metric.invert else row.calculated_score
        weighted_sum += s * metric.weight
        total_weight += metric.weight
        used += 1

    raw = weighted_sum / total_weight if total_weight > 0 else 0.0
    return CategoryGrade(
        id=category.id,
        name_nl=category.name_nl,
        name_en=category.name_en,
        grade=raw_score_to_grade(raw),
        raw_score=raw,
        metrics_used=used,
        metrics_total=len(category.metrics),
    )


def amenity_combined_score(score: AmenityScore) -> float:
    """70% count score, 30% proximity (bonus 0/1 mapped to -1/+1)."""
    return score.count_score * 0.7 + (score.proximity_bonus * 2 - 1) * 0.3


def calculate_voorzieningen_grade(scores: Optional[List[AmenityScore]]) -> CategoryGrade:
    weighted_sum = 0.0
    total_weight = 0.0
    used = 0
    for score in scores or []:
        weight = VOORZIENINGEN_WEIGHTS.get(score.category_id)
        if not weight:
            continue
        weighted_sum += amenity_combined_score(score) * weight
        total_weight += weight
        used += 1

    raw = weighted_sum / total_weight if total_weight > 0 else 0.0
    return CategoryGrade(
        id="voorzieningen",
        name_nl="Voorzieningen",
        name_en="Amenities",
        grade=raw_score_to_grade(raw),
        raw_score=raw,
        metrics_used=used,
        metrics_total=len(VOORZIENINGEN_WEIGHTS),
    )


def calculate_location_grades(
    bundle: UnifiedLocationData,
    amenity_scores: Optional[List[AmenityScore]] = None,
) -> LocationGrades:
    """All five category grades plus their unweighted mean.

    Amenity scores are rebuilt from the bundle's amenity rows when not given.
    """
    if amenity_scores is None:
        amenity_scores = amenity_scores_from_rows(bundle.amenities)
    grades = [calculate_category_grade(c, bundle) for c in ROW_CATEGORIES]
    grades.append(calculate_voorzieningen_grade(amenity_scores))
    overall = _round1(sum(g.grade for g in grades) / len(grades))
    logger.debug(
        "Grades for %s: %s overall=%.1f",
        bundle.location.address, {g.id: g.grade for g in grades}, overall,
    )
    return LocationGrades(categories=tuple(grades), overall=overall)


# Import-time validation (ValueError, not assert, so never stripped by -O)
for _cat in ROW_CATEGORIES:
    _wsum = sum(m.weight for m in _cat.metrics)
    if abs(_wsum - 1.0) >= 0.001:
        raise ValueError(f"Grade category {_cat.id!r} weights sum to {_wsum}, expected 1.0")
_vsum = sum(VOORZIENINGEN_WEIGHTS.values())
if abs(_vsum - 1.0) >= 0.001:
    raise ValueError(f"VOORZIENINGEN_WEIGHTS sum to {_vsum}, expected 1.0")
