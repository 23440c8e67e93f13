"""
Core data model for BuurtScore location bundles.

A bundle (UnifiedLocationData) holds every indicator row produced for one
address: four geographic levels per statistical provider, plus municipality
level amenity and residential-market rows.

Rows are frozen.  Scoring never mutates a row; it returns a copy carrying the
attached ScoringConfig and calculated_score (see scoring_config.py).

Serialization helpers at the bottom of this module round-trip a bundle
through plain dicts (and therefore JSON).  absolute and relative are always
written, None included, so an explicit null survives the round trip.
scoring and calculated_score appear together once a row has been scored.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# =============================================================================
# Enums
# =============================================================================

class SourceType(str, Enum):
    DEMOGRAPHICS = "demographics"
    HEALTH = "health"
    LIVABILITY = "livability"
    SAFETY = "safety"
    RESIDENTIAL = "residential"
    AMENITIES = "amenities"


class GeographicLevel(str, Enum):
    """Nested area levels, coarsest first."""
    NATIONAL = "national"
    MUNICIPALITY = "municipality"
    DISTRICT = "district"
    NEIGHBORHOOD = "neighborhood"


ALL_LEVELS: Tuple[GeographicLevel, ...] = tuple(GeographicLevel)

# Most specific first; used when picking the best available level.
SPECIFICITY_ORDER: Tuple[GeographicLevel, ...] = (
    GeographicLevel.NEIGHBORHOOD,
    GeographicLevel.DISTRICT,
    GeographicLevel.MUNICIPALITY,
)

COMPARISON_RELATIVE = "relative"
COMPARISON_ABSOLUTE = "absolute"
DIRECTION_POSITIVE = "positive"
DIRECTION_NEGATIVE = "negative"

NATIONAL_NAME = "Nederland"
NATIONAL_CODE = "NL01"


# =============================================================================
# Dataclasses
# =============================================================================

@dataclass(frozen=True)
class ScoringConfig:
    """Comparison policy for one indicator.

    margin is a percentage of base_value: 50 means the score saturates at
    +/-1 once the value is 50% above or below the baseline.
    """
    comparison_type: str = COMPARISON_RELATIVE
    margin: float = 20.0
    base_value: Optional[float] = None
    direction: str = DIRECTION_POSITIVE

    def __post_init__(self):
        if self.comparison_type not in (COMPARISON_RELATIVE, COMPARISON_ABSOLUTE):
            raise ValueError(f"Unknown comparison_type: {self.comparison_type!r}")
        if self.direction not in (DIRECTION_POSITIVE, DIRECTION_NEGATIVE):
            raise ValueError(f"Unknown direction: {self.direction!r}")
        if self.margin is None or self.margin <= 0:
            raise ValueError(f"margin must be > 0, got {self.margin!r}")


@dataclass(frozen=True)
class UnifiedRow:
    """One indicator at one geographic level for one provider."""
    source: SourceType
    geographic_level: GeographicLevel
    geographic_code: str
    geographic_name: str
    key: str
    title: str
    title_nl: str = ""
    title_en: str = ""
    original_value: Any = None
    absolute: Optional[float] = None
    relative: Optional[float] = None
    unit: str = ""
    scoring: Optional[ScoringConfig] = None
    calculated_score: Optional[float] = None

    @property
    def is_scored(self) -> bool:
        return self.scoring is not None


@dataclass(frozen=True)
class AreaDescriptor:
    code: str
    name: str


@dataclass(frozen=True)
class LocationData:
    """A geocoded address with its nested administrative areas.

    Municipality is always present; district and neighborhood are not
    (rural addresses sometimes resolve only to a municipality).
    """
    address: str
    municipality: AreaDescriptor
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rd_x: Optional[float] = None  # Rijksdriehoek (EPSG:28992)
    rd_y: Optional[float] = None
    district: Optional[AreaDescriptor] = None
    neighborhood: Optional[AreaDescriptor] = None

    def area_for(self, level: GeographicLevel) -> Optional[AreaDescriptor]:
        if level == GeographicLevel.NATIONAL:
            return AreaDescriptor(code=NATIONAL_CODE, name=NATIONAL_NAME)
        if level == GeographicLevel.MUNICIPALITY:
            return self.municipality
        if level == GeographicLevel.DISTRICT:
            return self.district
        return self.neighborhood


@dataclass(frozen=True)
class LevelResponse:
    """Raw provider record for one geographic level."""
    level_code: str
    level_name: str
    raw: Dict[str, Any]


# level -> response, or None / missing when the provider had nothing
MultiLevelResponse = Dict[GeographicLevel, Optional[LevelResponse]]


@dataclass
class LevelRows:
    """Row lists for all four levels.  Every list is always present."""
    national: List[UnifiedRow] = field(default_factory=list)
    municipality: List[UnifiedRow] = field(default_factory=list)
    district: List[UnifiedRow] = field(default_factory=list)
    neighborhood: List[UnifiedRow] = field(default_factory=list)

    def for_level(self, level: GeographicLevel) -> List[UnifiedRow]:
        return getattr(self, level.value)

    def all_rows(self) -> List[UnifiedRow]:
        rows: List[UnifiedRow] = []
        for level in ALL_LEVELS:
            rows.extend(self.for_level(level))
        return rows

    def best_available(self) -> List[UnifiedRow]:
        """Most specific non-empty level below national, or []."""
        for level in SPECIFICITY_ORDER:
            rows = self.for_level(level)
            if rows:
                return rows
        return []


@dataclass(frozen=True)
class ReferenceHouse:
    """A comparable sold house from the residential-market provider."""
    house_type: str
    inner_surface_area: float = 0.0
    outer_surface_area: float = 0.0
    volume: Optional[float] = None
    build_year: int = 0
    transaction_price: str = ""          # range, e.g. "275000-300000"
    indexed_transaction_price: str = ""  # range, e.g. "400000-450000"
    distance_m: Optional[float] = None


@dataclass
class ResidentialPayload:
    """Residential-market data attached at municipality level.

    ``rows`` carries the converted rows with precomputed scores so they
    survive a serialization round trip without the reference houses.
    """
    has_data: bool
    reference_houses: List[ReferenceHouse] = field(default_factory=list)
    scores: Optional[Dict[str, Any]] = None
    rows: List[UnifiedRow] = field(default_factory=list)


@dataclass
class UnifiedLocationData:
    location: LocationData
    demographics: LevelRows = field(default_factory=LevelRows)
    health: LevelRows = field(default_factory=LevelRows)
    livability: LevelRows = field(default_factory=LevelRows)
    safety: LevelRows = field(default_factory=LevelRows)
    amenities: List[UnifiedRow] = field(default_factory=list)
    residential: Optional[ResidentialPayload] = None
    fetched_at: str = ""

    def levels_for(self, source: SourceType) -> Optional[LevelRows]:
        if source in (SourceType.AMENITIES, SourceType.RESIDENTIAL):
            return None
        return getattr(self, source.value)

    def municipality_rows(self, source: SourceType) -> List[UnifiedRow]:
        """Amenity/residential rows live outside the LevelRows structure."""
        if source == SourceType.AMENITIES:
            return list(self.amenities)
        if source == SourceType.RESIDENTIAL:
            return list(self.residential.rows) if self.residential else []
        return list(self.levels_for(source).municipality)


# =============================================================================
# Serialization
# =============================================================================

def _scoring_to_dict(cfg: Optional[ScoringConfig]) -> Optional[dict]:
    if cfg is None:
        return None
    return {
        "comparison_type": cfg.comparison_type,
        "margin": cfg.margin,
        "base_value": cfg.base_value,
        "direction": cfg.direction,
    }


def _scoring_from_dict(d: Optional[dict]) -> Optional[ScoringConfig]:
    if d is None:
        return None
    return ScoringConfig(
        comparison_type=d.get("comparison_type", COMPARISON_RELATIVE),
        margin=d.get("margin", 20.0),
        base_value=d.get("base_value"),
        direction=d.get("direction", DIRECTION_POSITIVE),
    )


def row_to_dict(row: UnifiedRow) -> dict:
    d = {
        "source": row.source.value,
        "geographic_level": row.geographic_level.value,
        "geographic_code": row.geographic_code,
        "geographic_name": row.geographic_name,
        "key": row.key,
        "title": row.title,
        "title_nl": row.title_nl,
        "title_en": row.title_en,
        "original_value": row.original_value,
        "absolute": row.absolute,
        "relative": row.relative,
        "unit": row.unit,
    }
    # scoring/calculated_score are only written once a row has been scored,
    # so "never scored" and "scored to null" stay distinguishable.
    if row.scoring is not None:
        d["scoring"] = _scoring_to_dict(row.scoring)
        d["calculated_score"] = row.calculated_score
    return d


def row_from_dict(d: dict) -> UnifiedRow:
    return UnifiedRow(
        source=SourceType(d["source"]),
        geographic_level=GeographicLevel(d["geographic_level"]),
        geographic_code=d.get("geographic_code", ""),
        geographic_name=d.get("geographic_name", ""),
        key=d["key"],
        title=d.get("title", d["key"]),
        title_nl=d.get("title_nl", ""),
        title_en=d.get("title_en", ""),
        original_value=d.get("original_value"),
        absolute=d.get("absolute"),
        relative=d.get("relative"),
        unit=d.get("unit", ""),
        scoring=_scoring_from_dict(d.get("scoring")),
        calculated_score=d.get("calculated_score"),
    )


def _area_to_dict(area: Optional[AreaDescriptor]) -> Optional[dict]:
    return {"code": area.code, "name": area.name} if area else None


def _area_from_dict(d: Optional[dict]) -> Optional[AreaDescriptor]:
    return AreaDescriptor(code=d["code"], name=d["name"]) if d else None


def location_to_dict(loc: LocationData) -> dict:
    return {
        "address": loc.address,
        "latitude": loc.latitude,
        "longitude": loc.longitude,
        "rd_x": loc.rd_x,
        "rd_y": loc.rd_y,
        "municipality": _area_to_dict(loc.municipality),
        "district": _area_to_dict(loc.district),
        "neighborhood": _area_to_dict(loc.neighborhood),
    }


def location_from_dict(d: dict) -> LocationData:
    return LocationData(
        address=d["address"],
        municipality=_area_from_dict(d["municipality"]),
        latitude=d.get("latitude"),
        longitude=d.get("longitude"),
        rd_x=d.get("rd_x"),
        rd_y=d.get("rd_y"),
        district=_area_from_dict(d.get("district")),
        neighborhood=_area_from_dict(d.get("neighborhood")),
    )


def _level_rows_to_dict(levels: LevelRows) -> dict:
    return {
        level.value: [row_to_dict(r) for r in levels.for_level(level)]
        for level in ALL_LEVELS
    }


def _level_rows_from_dict(d: Optional[dict]) -> LevelRows:
    d = d or {}
    return LevelRows(**{
        level.value: [row_from_dict(r) for r in d.get(level.value) or []]
        for level in ALL_LEVELS
    })


def _house_to_dict(h: ReferenceHouse) -> dict:
    return {
        "house_type": h.house_type,
        "inner_surface_area": h.inner_surface_area,
        "outer_surface_area": h.outer_surface_area,
        "volume": h.volume,
        "build_year": h.build_year,
        "transaction_price": h.transaction_price,
        "indexed_transaction_price": h.indexed_transaction_price,
        "distance_m": h.distance_m,
    }


def house_from_dict(d: dict) -> ReferenceHouse:
    return ReferenceHouse(
        house_type=d.get("house_type", ""),
        inner_surface_area=d.get("inner_surface_area") or 0.0,
        outer_surface_area=d.get("outer_surface_area") or 0.0,
        volume=d.get("volume"),
        build_year=d.get("build_year") or 0,
        transaction_price=d.get("transaction_price") or "",
        indexed_transaction_price=d.get("indexed_transaction_price") or "",
        distance_m=d.get("distance_m"),
    )


def bundle_to_dict(bundle: UnifiedLocationData) -> dict:
    residential = None
    if bundle.residential is not None:
        residential = {
            "has_data": bundle.residential.has_data,
            "reference_houses": [_house_to_dict(h) for h in bundle.residential.reference_houses],
            "scores": bundle.residential.scores,
            "rows": [row_to_dict(r) for r in bundle.residential.rows],
        }
    return {
        "location": location_to_dict(bundle.location),
        "demographics": _level_rows_to_dict(bundle.demographics),
        "health": _level_rows_to_dict(bundle.health),
        "livability": _level_rows_to_dict(bundle.livability),
        "safety": _level_rows_to_dict(bundle.safety),
        "amenities": [row_to_dict(r) for r in bundle.amenities],
        "residential": residential,
        "fetched_at": bundle.fetched_at,
    }


def bundle_from_dict(d: dict) -> UnifiedLocationData:
    residential = None
    res = d.get("residential")
    if res is not None:
        residential = ResidentialPayload(
            has_data=bool(res.get("has_data")),
            reference_houses=[house_from_dict(h) for h in res.get("reference_houses") or []],
            scores=res.get("scores"),
            rows=[row_from_dict(r) for r in res.get("rows") or []],
        )
    return UnifiedLocationData(
        location=location_from_dict(d["location"]),
        demographics=_level_rows_from_dict(d.get("demographics")),
        health=_level_rows_from_dict(d.get("health")),
        livability=_level_rows_from_dict(d.get("livability")),
        safety=_level_rows_from_dict(d.get("safety")),
        amenities=[row_from_dict(r) for r in d.get("amenities") or []],
        residential=residential,
        fetched_at=d.get("fetched_at", ""),
    )
