"""
Location scoring orchestration.

LocationScoringService wires the pipeline together with explicit
dependencies:

    request -> amenity/residential conversion -> aggregate -> score
            -> rank personas -> scenarios -> grades -> cache write

Cached bundles are version-checked on load.  Bundles written by an
incompatible or unversioned scoring algorithm are re-scored from their
rows before use, then written back.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from aggregator import MultiLevelAggregator
from amenity_scoring import (
    AmenityCategoryResult,
    AmenityPlace,
    AmenityScore,
    calculate_amenity_scores,
    convert_amenities_to_rows,
)
from location_data import (
    GeographicLevel,
    LevelResponse,
    LocationData,
    MultiLevelResponse,
    ReferenceHouse,
    UnifiedLocationData,
    bundle_from_dict,
    bundle_to_dict,
    house_from_dict,
    location_from_dict,
)
from location_grades import LocationGrades, calculate_location_grades
from models import LocationResultCache
from persona_ranking import (
    PersonaScore,
    Scenario,
    build_scenarios,
    extract_location_scores,
    rank_personas,
    verify_rank_consistency,
)
from personas import HOUSING_PERSONAS, SHARED_SPACES, Persona, SharedSpace
from residential_scoring import build_residential_payload
from scoring_config import OverrideTable, apply_scoring
from scoring_version import (
    CURRENT_SCORING_VERSION,
    VersionCompatibility,
    create_scoring_metadata,
    is_version_compatible,
)
from trace_context import (
    STAGE_AGGREGATE,
    STAGE_CACHE_READ,
    STAGE_CACHE_WRITE,
    STAGE_GRADE,
    STAGE_PARSE,
    STAGE_RANK,
    STAGE_SCORE,
    get_trace,
    traced_stage,
)

logger = logging.getLogger(__name__)

PROVIDER_FIELDS = ("demographics", "health", "livability", "safety")
HOUSE_NUMERIC_FIELDS = ("inner_surface_area", "outer_surface_area", "volume", "build_year", "distance_m")


class InvalidRequest(ValueError):
    """The evaluation request body is malformed."""


# =============================================================================
# Request / result
# =============================================================================

@dataclass
class EvaluationRequest:
    location: LocationData
    demographics: MultiLevelResponse = field(default_factory=dict)
    health: MultiLevelResponse = field(default_factory=dict)
    livability: MultiLevelResponse = field(default_factory=dict)
    safety: MultiLevelResponse = field(default_factory=dict)
    amenities: Optional[List[AmenityCategoryResult]] = None
    reference_houses: Optional[List[ReferenceHouse]] = None


def _multi_level_from_dict(d: Optional[Dict[str, Any]], name: str) -> MultiLevelResponse:
    if d is None:
        return {}
    if not isinstance(d, dict):
        raise InvalidRequest(f"{name} must be an object keyed by geographic level")
    out: MultiLevelResponse = {}
    for level_name, resp in d.items():
        try:
            level = GeographicLevel(level_name)
        except ValueError:
            raise InvalidRequest(f"{name}: unknown geographic level {level_name!r}") from None
        if resp is None:
            out[level] = None
            continue
        if not isinstance(resp, dict) or not isinstance(resp.get("raw"), dict):
            raise InvalidRequest(f"{name}.{level_name} must carry a raw record object")
        out[level] = LevelResponse(
            level_code=str(resp.get("level_code") or ""),
            level_name=str(resp.get("level_name") or ""),
            raw=resp["raw"],
        )
    return out


def _check_number(value: Any, where: str, integer: bool = False) -> None:
    """Raise InvalidRequest unless *value* is None or a finite JSON number."""
    if value is None:
        return
    ok = isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
    if ok and integer:
        ok = isinstance(value, int) and value >= 0
    if not ok:
        kind = "a non-negative integer" if integer else "a number"
        raise InvalidRequest(f"{where} must be {kind}, got {value!r}")


def _amenity_from_dict(d: Dict[str, Any]) -> AmenityCategoryResult:
    if not d.get("category_id"):
        raise InvalidRequest("amenity result needs a category_id")
    category_id = d["category_id"]
    _check_number(d.get("count"), f"amenities.{category_id}.count", integer=True)
    places = []
    for p in d.get("places") or []:
        _check_number(p.get("distance_m"), f"amenities.{category_id}.places.distance_m")
        places.append(AmenityPlace(name=p.get("name", ""), distance_m=p.get("distance_m")))
    return AmenityCategoryResult(category_id=category_id, places=tuple(places), count=d.get("count"))


def _house_from_request(d: Dict[str, Any]) -> ReferenceHouse:
    if not isinstance(d, dict):
        raise InvalidRequest("reference_houses entries must be objects")
    for name in HOUSE_NUMERIC_FIELDS:
        _check_number(d.get(name), f"reference_houses.{name}")
    return house_from_dict(d)


def request_from_dict(payload: Dict[str, Any]) -> EvaluationRequest:
    """Build an EvaluationRequest from a JSON body.  Raises InvalidRequest when malformed."""
    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object")
    loc = payload.get("location")
    if not isinstance(loc, dict) or not loc.get("address"):
        raise InvalidRequest("location.address is required")
    if not isinstance(loc.get("municipality"), dict):
        raise InvalidRequest("location.municipality is required")
    try:
        location = location_from_dict(loc)
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidRequest(f"Malformed location: {e}") from e

    amenities = payload.get("amenities")
    houses = payload.get("reference_houses")
    try:
        return EvaluationRequest(
            location=location,
            amenities=[_amenity_from_dict(a) for a in amenities] if amenities is not None else None,
            reference_houses=[_house_from_request(h) for h in houses] if houses is not None else None,
            **{name: _multi_level_from_dict(payload.get(name), name) for name in PROVIDER_FIELDS},
        )
    except (AttributeError, TypeError) as e:
        raise InvalidRequest(f"Malformed request body: {e}") from e


@dataclass
class EvaluationResult:
    bundle: UnifiedLocationData
    persona_scores: List[PersonaScore]
    scenarios: List[Scenario]
    grades: LocationGrades
    scoring_metadata: Dict[str, Any]
    from_cache: bool = False
    rescored: bool = False
    version_check: Optional[VersionCompatibility] = None
    amenity_scores: List[AmenityScore] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "bundle": bundle_to_dict(self.bundle),
            "persona_scores": [s.to_dict() for s in self.persona_scores],
            "scenarios": [s.to_dict() for s in self.scenarios],
            "grades": self.grades.to_dict(),
            "scoring_metadata": self.scoring_metadata,
            "from_cache": self.from_cache,
            "rescored": self.rescored,
        }
        if self.version_check is not None:
            out["version_check"] = self.version_check.to_dict()
        return out


# =============================================================================
# Service
# =============================================================================

class LocationScoringService:
    """Aggregate, score and rank one location per call.

    Holds no per-request state; one instance can serve concurrent requests.
    """

    def __init__(
        self,
        aggregator: MultiLevelAggregator,
        cache: Optional[LocationResultCache] = None,
        overrides: Optional[OverrideTable] = None,
        personas: Sequence[Persona] = HOUSING_PERSONAS,
        spaces: Sequence[SharedSpace] = SHARED_SPACES,
    ):
        self.aggregator = aggregator
        self.cache = cache
        self.overrides = overrides
        self.personas = personas
        self.spaces = spaces

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def evaluate(self, request: EvaluationRequest, use_cache: bool = True) -> EvaluationResult:
        address = request.location.address
        trace = get_trace()
        if trace:
            trace.scoring_version = CURRENT_SCORING_VERSION

        if use_cache and self.cache is not None:
            cached = self._from_cache(address)
            if cached is not None:
                return cached

        with traced_stage(STAGE_PARSE) as rec:
            amenity_scores = calculate_amenity_scores(request.amenities or [])
            amenity_rows = convert_amenities_to_rows(amenity_scores, request.location.municipality)
            residential = None
            if request.reference_houses is not None:
                residential = build_residential_payload(request.reference_houses, request.location.municipality)
            rec.rows = len(amenity_rows) + (len(residential.rows) if residential else 0)

        with traced_stage(STAGE_AGGREGATE) as rec:
            bundle = self.aggregator.aggregate(
                request.location,
                demographics=request.demographics,
                health=request.health,
                livability=request.livability,
                safety=request.safety,
                amenities=amenity_rows,
                residential=residential,
            )
            rec.rows = _row_count(bundle)

        bundle = self.rescore(bundle)
        result = self._finish(bundle, amenity_scores)

        if use_cache and self.cache is not None:
            self._store(address, result)
        return result

    def rescore(self, bundle: UnifiedLocationData) -> UnifiedLocationData:
        """Re-apply scoring to *bundle*.  Applying it twice gives the same bundle."""
        with traced_stage(STAGE_SCORE) as rec:
            scored = apply_scoring(bundle, self.overrides)
            rec.rows = _row_count(scored)
        return scored

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _finish(
        self,
        bundle: UnifiedLocationData,
        amenity_scores: Optional[List[AmenityScore]] = None,
    ) -> EvaluationResult:
        with traced_stage(STAGE_RANK) as rec:
            location_scores = extract_location_scores(bundle)
            persona_scores = rank_personas(location_scores, self.personas)
            verify_rank_consistency(persona_scores, [p.id for p in self.personas])
            scenarios = build_scenarios(persona_scores, self.personas, self.spaces)
            rec.rows = len(persona_scores)

        with traced_stage(STAGE_GRADE) as rec:
            grades = calculate_location_grades(bundle, amenity_scores or None)
            rec.rows = len(grades.categories)

        return EvaluationResult(
            bundle=bundle,
            persona_scores=persona_scores,
            scenarios=scenarios,
            grades=grades,
            scoring_metadata=create_scoring_metadata(),
            amenity_scores=list(amenity_scores or []),
        )

    def _from_cache(self, address: str) -> Optional[EvaluationResult]:
        trace = get_trace()
        with traced_stage(STAGE_CACHE_READ) as rec:
            entry = self.cache.get_entry(address)
            rec.rows = 1 if entry else 0
        if entry is None:
            if trace:
                trace.record_cache_event("miss", address)
            return None

        try:
            bundle = bundle_from_dict(entry.data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Cached bundle for %s does not decode; treating as miss", address, exc_info=True)
            self.cache.remove(address)
            if trace:
                trace.record_cache_event("miss", address, "undecodable")
            return None

        compat = is_version_compatible(entry.scoring_version)
        stale = compat.requires_rescore or not entry.scoring_version
        if stale:
            logger.info("Re-scoring cached bundle for %s: %s", address, compat.message)
            bundle = self.rescore(bundle)
        if trace:
            trace.record_cache_event("stale" if stale else "hit", address, compat.message)

        result = self._finish(bundle, _amenity_scores_from_entry(entry.amenities))
        result.from_cache = True
        result.rescored = stale
        result.version_check = compat
        if stale:
            self._store(address, result)
        return result

    def _store(self, address: str, result: EvaluationResult) -> bool:
        trace = get_trace()
        with traced_stage(STAGE_CACHE_WRITE) as rec:
            stored = self.cache.set(
                address,
                bundle_to_dict(result.bundle),
                amenities=[_amenity_score_to_dict(s) for s in result.amenity_scores] or None,
                scoring_version=result.scoring_metadata["scoring_algorithm_version"],
            )
            rec.rows = 1 if stored else 0
        if trace:
            trace.record_cache_event("stored" if stored else "rejected", address)
        return stored


def _row_count(bundle: UnifiedLocationData) -> int:
    n = 0
    for name in PROVIDER_FIELDS:
        n += len(getattr(bundle, name).all_rows())
    n += len(bundle.amenities)
    if bundle.residential is not None:
        n += len(bundle.residential.rows)
    return n


def _amenity_score_to_dict(s: AmenityScore) -> Dict[str, Any]:
    return {
        "category_id": s.category_id,
        "category_name": s.category_name,
        "count": s.count,
        "count_score": s.count_score,
        "proximity_bonus": s.proximity_bonus,
        "combined_score": s.combined_score,
        "closest_distance_m": s.closest_distance_m,
    }


def _amenity_scores_from_entry(raw: Any) -> List[AmenityScore]:
    """Decode the amenity scores stored beside a cached bundle.  [] when absent or unreadable."""
    if not isinstance(raw, list):
        return []
    try:
        return [
            AmenityScore(
                category_id=d["category_id"],
                category_name=d.get("category_name", d["category_id"]),
                count=d["count"],
                count_score=d["count_score"],
                proximity_bonus=d["proximity_bonus"],
                combined_score=d["combined_score"],
                closest_distance_m=d.get("closest_distance_m"),
            )
            for d in raw
        ]
    except (KeyError, TypeError):
        logger.warning("Cached amenity scores do not decode; grading from rows", exc_info=True)
        return []
