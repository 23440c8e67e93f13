"""
Multi-level aggregation of provider records into one location bundle.

Each statistics provider answers per geographic level.  The aggregator parses
every level it has, attaches geographic identity to the parsed indicators,
and returns a UnifiedLocationData whose row lists are always present:

  - demographics, health, safety: national, municipality, district,
    neighborhood
  - livability: national and municipality only.  The Leefbaarometer has no
    district/neighborhood breakdown, so those lists are always empty.
  - amenities, residential: municipality only, supplied pre-converted.

Parsers that derive head counts from percentages (health, livability,
safety) receive the total population of the matching level, taken from the
demographics record of that level.  When that record is missing the
municipality population is used, and when that is missing too the parsers
get None and leave absolute values empty.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from indicator_parsers import ParsedIndicator, parse_record, population_from_raw
from location_data import (
    ALL_LEVELS,
    GeographicLevel,
    LevelResponse,
    LevelRows,
    LocationData,
    MultiLevelResponse,
    NATIONAL_NAME,
    ResidentialPayload,
    SourceType,
    UnifiedLocationData,
    UnifiedRow,
)

logger = logging.getLogger(__name__)

# Levels each provider publishes.
SOURCE_LEVELS: Dict[SourceType, tuple] = {
    SourceType.DEMOGRAPHICS: ALL_LEVELS,
    SourceType.HEALTH: ALL_LEVELS,
    SourceType.LIVABILITY: (GeographicLevel.NATIONAL, GeographicLevel.MUNICIPALITY),
    SourceType.SAFETY: ALL_LEVELS,
}

# Sources whose parser needs a population denominator.
_POPULATION_SOURCES = frozenset({SourceType.HEALTH, SourceType.LIVABILITY, SourceType.SAFETY})


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _level_response(responses: Optional[MultiLevelResponse], level: GeographicLevel) -> Optional[LevelResponse]:
    if not responses:
        return None
    resp = responses.get(level)
    if resp is None:
        # tolerate plain string keys from JSON payloads
        resp = responses.get(level.value)  # type: ignore[call-overload]
    return resp


class MultiLevelAggregator:
    """Builds UnifiedLocationData from per-level provider records.

    Stateless apart from the injectable clock used for ``fetched_at``; one
    instance can serve concurrent aggregations.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or _utc_now

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def aggregate(
        self,
        location: LocationData,
        demographics: Optional[MultiLevelResponse] = None,
        health: Optional[MultiLevelResponse] = None,
        livability: Optional[MultiLevelResponse] = None,
        safety: Optional[MultiLevelResponse] = None,
        amenities: Optional[Iterable[UnifiedRow]] = None,
        residential: Optional[ResidentialPayload] = None,
    ) -> UnifiedLocationData:
        populations = self._populations(demographics)

        bundle = UnifiedLocationData(
            location=location,
            demographics=self._aggregate_source(SourceType.DEMOGRAPHICS, location, demographics, populations),
            health=self._aggregate_source(SourceType.HEALTH, location, health, populations),
            livability=self._aggregate_source(SourceType.LIVABILITY, location, livability, populations),
            safety=self._aggregate_source(SourceType.SAFETY, location, safety, populations),
            amenities=self._municipality_only(amenities),
            residential=residential,
            fetched_at=self._clock().isoformat(),
        )
        logger.info(
            "Aggregated %s: demographics=%d health=%d livability=%d safety=%d amenities=%d",
            location.address,
            len(bundle.demographics.all_rows()),
            len(bundle.health.all_rows()),
            len(bundle.livability.all_rows()),
            len(bundle.safety.all_rows()),
            len(bundle.amenities),
        )
        return bundle

    def _populations(self, demographics: Optional[MultiLevelResponse]) -> Dict[GeographicLevel, Optional[float]]:
        """Population per level with the municipality fallback applied."""
        direct = {}
        for level in ALL_LEVELS:
            resp = _level_response(demographics, level)
            direct[level] = population_from_raw(resp.raw if resp else None)
        municipality = direct[GeographicLevel.MUNICIPALITY]
        return {
            level: direct[level] if direct[level] is not None else municipality
            for level in ALL_LEVELS
        }

    def _aggregate_source(
        self,
        source: SourceType,
        location: LocationData,
        responses: Optional[MultiLevelResponse],
        populations: Dict[GeographicLevel, Optional[float]],
    ) -> LevelRows:
        levels = LevelRows()
        supported = SOURCE_LEVELS[source]
        for level in ALL_LEVELS:
            resp = _level_response(responses, level)
            if resp is None:
                continue
            if level not in supported:
                logger.debug("Ignoring %s data at unsupported level %s", source.value, level.value)
                continue
            population = populations[level] if source in _POPULATION_SOURCES else None
            parsed = parse_record(source, resp.raw, population)
            levels.for_level(level).extend(self._to_rows(source, level, location, resp, parsed))
        return levels

    @staticmethod
    def _to_rows(
        source: SourceType,
        level: GeographicLevel,
        location: LocationData,
        resp: LevelResponse,
        parsed: List[ParsedIndicator],
    ) -> List[UnifiedRow]:
        area = location.area_for(level)
        if level == GeographicLevel.NATIONAL:
            name = NATIONAL_NAME
        else:
            name = area.name if area else resp.level_name
        code = resp.level_code or (area.code if area else "")

        rows: List[UnifiedRow] = []
        seen = set()
        for ind in parsed:
            if ind.key in seen:
                continue
            seen.add(ind.key)
            rows.append(UnifiedRow(
                source=source,
                geographic_level=level,
                geographic_code=code,
                geographic_name=name,
                key=ind.key,
                title=ind.label,
                title_nl=ind.label,
                original_value=ind.original_value,
                absolute=ind.absolute,
                relative=ind.relative,
                unit=ind.unit,
            ))
        return rows

    @staticmethod
    def _municipality_only(rows: Optional[Iterable[UnifiedRow]]) -> List[UnifiedRow]:
        out = []
        for row in rows or []:
            if row.geographic_level != GeographicLevel.MUNICIPALITY:
                logger.warning("Dropping amenity row %s at level %s", row.key, row.geographic_level.value)
                continue
            out.append(row)
        return out

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def rows_by_source_and_level(
        bundle: UnifiedLocationData,
        source: SourceType,
        level: GeographicLevel,
    ) -> List[UnifiedRow]:
        if source in (SourceType.AMENITIES, SourceType.RESIDENTIAL):
            return bundle.municipality_rows(source) if level == GeographicLevel.MUNICIPALITY else []
        return list(bundle.levels_for(source).for_level(level))

    @classmethod
    def rows_by_level(cls, bundle: UnifiedLocationData, level: GeographicLevel) -> List[UnifiedRow]:
        rows: List[UnifiedRow] = []
        for source in SourceType:
            rows.extend(cls.rows_by_source_and_level(bundle, source, level))
        return rows

    @classmethod
    def all_rows(cls, bundle: UnifiedLocationData) -> List[UnifiedRow]:
        rows: List[UnifiedRow] = []
        for level in ALL_LEVELS:
            rows.extend(cls.rows_by_level(bundle, level))
        return rows

    @classmethod
    def find_by_key(
        cls,
        bundle: UnifiedLocationData,
        source: SourceType,
        level: GeographicLevel,
        key: str,
    ) -> Optional[UnifiedRow]:
        for row in cls.rows_by_source_and_level(bundle, source, level):
            if row.key == key:
                return row
        return None
