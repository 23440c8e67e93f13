"""
Scoring configuration and the comparative scoring engine for BuurtScore.

Owns every numeric constant that affects an indicator score: the default
comparison policy, per-source and per-indicator overrides, and the pure
margin-interpolation function that turns a value and a baseline into a
score in [-1, +1].

Frozen dataclasses provide type checking and IDE support without
the indirection of YAML/JSON config files.

Scoring never mutates rows or bundles; apply_scoring() returns a new
bundle whose rows carry the resolved ScoringConfig and calculated_score.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional, Union

from indicator_parsers import is_known_key
from location_data import (
    COMPARISON_RELATIVE,
    DIRECTION_NEGATIVE,
    DIRECTION_POSITIVE,
    GeographicLevel,
    LevelRows,
    ScoringConfig,
    SourceType,
    UnifiedLocationData,
    UnifiedRow,
)
from scoring_version import CURRENT_SCORING_VERSION

logger = logging.getLogger(__name__)


# =============================================================================
# Dataclasses
# =============================================================================

@dataclass(frozen=True)
class ScoringOverride:
    """Partial ScoringConfig.  None fields inherit from the layer below."""
    comparison_type: Optional[str] = None
    margin: Optional[float] = None
    base_value: Optional[float] = None
    direction: Optional[str] = None

    def apply_to(self, cfg: ScoringConfig) -> ScoringConfig:
        return ScoringConfig(
            comparison_type=self.comparison_type or cfg.comparison_type,
            margin=self.margin if self.margin is not None else cfg.margin,
            base_value=self.base_value if self.base_value is not None else cfg.base_value,
            direction=self.direction or cfg.direction,
        )


@dataclass(frozen=True)
class ScoringModel:
    """Top-level container for all indicator scoring parameters.

    A single module-level instance (SCORING_MODEL) is the source of truth.
    Bump `version` (scoring_version.CURRENT_SCORING_VERSION) on every change
    that alters score outputs.
    """
    version: str
    default: ScoringConfig
    source_defaults: Dict[SourceType, ScoringOverride] = field(default_factory=dict)
    indicator_overrides: Dict[SourceType, Dict[str, ScoringOverride]] = field(default_factory=dict)


# caller-supplied overrides: source -> key -> override (or a plain dict)
OverrideTable = Mapping[Union[SourceType, str], Mapping[str, Union[ScoringOverride, dict]]]


# =============================================================================
# Pure scoring functions
# =============================================================================

def clamp(x: float, lo: float = -1.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, x))


def score_value(value: Optional[float], config: ScoringConfig) -> Optional[float]:
    """Margin-normalized, clamped, direction-corrected deviation from baseline.

    The band is base +/- |base| * margin / 100.  Values at or beyond a bound
    score exactly -1 / +1; values strictly inside interpolate linearly, 0 at
    the baseline.  Negated when higher is worse.  Returns None when value or
    base is missing or non-finite, and when base is 0 (no band exists around
    a zero baseline).
    """
    base = config.base_value
    if value is None or base is None or base == 0:
        return None
    if not (math.isfinite(value) and math.isfinite(base)):
        return None
    half_width = abs(base) * config.margin / 100
    lower, upper = base - half_width, base + half_width
    if value <= lower:
        t = -1.0
    elif value >= upper:
        t = 1.0
    else:
        t = clamp((value - base) / half_width)
    if config.direction == DIRECTION_NEGATIVE:
        t = -t
    # avoid -0.0 leaking into JSON output
    return t + 0.0


def comparison_value(row: UnifiedRow, config: ScoringConfig) -> Optional[float]:
    if config.comparison_type == COMPARISON_RELATIVE:
        return row.relative
    return row.absolute


def score(row: UnifiedRow, config: ScoringConfig) -> Optional[float]:
    """Score one row under *config*.  See score_value()."""
    return score_value(comparison_value(row, config), config)


# =============================================================================
# SCORING_MODEL: current production values
# =============================================================================

DEFAULT_SCORING_CONFIG = ScoringConfig(
    comparison_type=COMPARISON_RELATIVE,
    margin=20,
    base_value=None,
    direction=DIRECTION_POSITIVE,
)

_NEG = ScoringOverride(direction=DIRECTION_NEGATIVE)
# Report marks cluster tightly around 7; a 10% band keeps them informative.
_MARK = ScoringOverride(margin=10)

_HEALTH_OVERRIDES = {
    key: _NEG for key in (
        "Ondergewicht_7",
        "Overgewicht_9",
        "ErnstigOvergewicht_10",
        "Roker_11",
        "Drinker_13",
        "ZwareDrinker_14",
        "OvermatigeDrinker_15",
        "EenOfMeerLangdurigeAandoeningen_16",
        "BeperktVanwegeGezondheid_17",
        "ErnstigBeperktVanwegeGezondheid_18",
        "LangdurigErnstigBeperkt_19",
        "PsychischeKlachten_20",
        "ZeerLageVeerkracht_21",
        "MistEmotioneleSteun_23",
        "SuicideGedachtenLaatste12Maanden_24",
        "HoogRisicoOpAngstOfDepressie_25",
        "HeelVeelStressInAfgelopen4Weken_26",
        "Eenzaam_27",
        "ErnstigZeerErnstigEenzaam_28",
        "EmotioneelEenzaam_29",
        "SociaalEenzaam_30",
        "MoeiteMetRondkomen_33",
        "NietSpecifiekeKlachten_37",
    )
}

_LIVABILITY_OVERRIDES: Dict[str, ScoringOverride] = {
    key: _NEG for key in (
        "MensenKennenElkaarNauwelijks_7",
        "AchteruitGegaan_17",
        "ErvaartEenOfMeerVormenVanOverlast_21",
        "RommelOpStraat_22",
        "StraatmeubilairDatVernieldIs_23",
        "BekladdeMurenOfGebouwen_24",
        "Hondenpoep_25",
        "EenOfMeerVormenFysiekeVerloedering_26",
        "DronkenMensenOpStraat_27",
        "VerwardePersonen_28",
        "Drugsgebruik_29",
        "Drugshandel_30",
        "OverlastDoorBuurtbewoners_31",
        "MensenWordenOpStraatLastiggevallen_32",
        "RondhangendeJongeren_33",
        "EenOfMeerVormenVanSocialeOverlast_34",
        "Parkeerproblemen_35",
        "TeHardRijden_36",
        "AgressiefGedragInVerkeer_37",
        "EenOfMeerVormenVanVerkeersoverlast_38",
        "Geluidsoverlast_39",
        "Stankoverlast_40",
        "OverlastVanHorecagelegenheden_41",
        "EenOfMeerVormenVanMilieuoverlast_42",
        "VoeltZichWeleensOnveilig_43",
        "VoeltZichVaakOnveilig_44",
        "VoeltZichWeleensOnveiligInBuurt_50",
        "VoeltZichVaakOnveiligInBuurt_51",
        "SAvondsOpStraatInBuurtOnveilig_52",
        "SAvondsAlleenThuisOnveilig_53",
        "DoetSAvondsNietOpen_54",
        "RijdtOfLooptOm_55",
        "BangSlachtofferCriminaliteitTeWorden_56",
        "DenktDatErVeelCriminaliteitInBuurt_57",
        "VindtCriminaliteitInBuurtToegenomen_58",
        "GediscrimineerdGevoeld_66",
    )
}
_LIVABILITY_OVERRIDES.update({
    "RapportcijferLeefbaarheidWoonbuurt_18": _MARK,
    "RapportcijferVeiligheidInBuurt_60": _MARK,
    "OordeelFunctionerenGemeenteAlgemeen_19": _MARK,
    "OordeelFunctionerenGemeenteHandhavers_20": _MARK,
})

_DEMOGRAPHICS_OVERRIDES = {
    key: _NEG for key in (
        "PercentageOnbewoond_39",
        "HuishoudensMetEenLaagInkomen_78",
        "HuishOnderOfRondSociaalMinimum_79",
        "HuishoudensTot110VanSociaalMinimum_80",
        "HuishoudensTot120VanSociaalMinimum_81",
        "PersonenPerSoortUitkeringBijstand_83",
        "PersonenPerSoortUitkeringWW_85",
        "AfstandTotHuisartsenpraktijk_105",
        "AfstandTotGroteSupermarkt_106",
        "AfstandTotKinderdagverblijf_107",
        "AfstandTotSchool_108",
    )
}


SCORING_MODEL = ScoringModel(
    version=CURRENT_SCORING_VERSION,
    default=DEFAULT_SCORING_CONFIG,
    source_defaults={
        # every registered crime is unfavorable; per-capita rates swing widely
        SourceType.SAFETY: ScoringOverride(direction=DIRECTION_NEGATIVE, margin=50),
    },
    indicator_overrides={
        SourceType.HEALTH: _HEALTH_OVERRIDES,
        SourceType.LIVABILITY: _LIVABILITY_OVERRIDES,
        SourceType.DEMOGRAPHICS: _DEMOGRAPHICS_OVERRIDES,
    },
)


# =============================================================================
# Config resolution
# =============================================================================

def _coerce_override(value: Union[ScoringOverride, dict]) -> ScoringOverride:
    if isinstance(value, ScoringOverride):
        return value
    return ScoringOverride(
        comparison_type=value.get("comparison_type"),
        margin=value.get("margin"),
        base_value=value.get("base_value"),
        direction=value.get("direction"),
    )


def _caller_override(overrides: Optional[OverrideTable], source: SourceType, key: str) -> Optional[ScoringOverride]:
    if not overrides:
        return None
    per_source = overrides.get(source)
    if per_source is None:
        per_source = overrides.get(source.value)
    if not per_source or key not in per_source:
        return None
    return _coerce_override(per_source[key])


def resolve_scoring_config(
    source: SourceType,
    key: str,
    national_row: Optional[UnifiedRow] = None,
    overrides: Optional[OverrideTable] = None,
    model: ScoringModel = SCORING_MODEL,
) -> ScoringConfig:
    """Layer default -> source default -> indicator override -> caller override.

    A still-missing base_value falls back to the national row's value of
    the compared kind (relative or absolute).
    """
    cfg = model.default
    layers = (
        model.source_defaults.get(source),
        model.indicator_overrides.get(source, {}).get(key),
        _caller_override(overrides, source, key),
    )
    for layer in layers:
        if layer is not None:
            cfg = layer.apply_to(cfg)

    if cfg.base_value is None and national_row is not None:
        base = national_row.relative if cfg.comparison_type == COMPARISON_RELATIVE else national_row.absolute
        if base is not None:
            cfg = replace(cfg, base_value=base)
    return cfg


# =============================================================================
# Row / bundle scoring
# =============================================================================

def score_row(row: UnifiedRow, config: ScoringConfig) -> UnifiedRow:
    """Copy of *row* carrying *config* and its score."""
    return replace(row, scoring=config, calculated_score=score(row, config))


def score_rows(
    rows: List[UnifiedRow],
    national_rows: List[UnifiedRow],
    source: SourceType,
    overrides: Optional[OverrideTable] = None,
    model: ScoringModel = SCORING_MODEL,
) -> List[UnifiedRow]:
    national_by_key = {r.key: r for r in national_rows}
    out = []
    for row in rows:
        cfg = resolve_scoring_config(source, row.key, national_by_key.get(row.key), overrides, model)
        out.append(score_row(row, cfg))
    return out


def _score_levels(
    levels: LevelRows,
    source: SourceType,
    overrides: Optional[OverrideTable],
    model: ScoringModel,
) -> LevelRows:
    national = levels.national
    return LevelRows(**{
        level.value: score_rows(levels.for_level(level), national, source, overrides, model)
        for level in GeographicLevel
    })


def _keep_precomputed(rows: List[UnifiedRow]) -> List[UnifiedRow]:
    """Amenity and residential rows arrive with scores already attached.

    A row without a score gets one from its own config, if it has one.
    """
    out = []
    for row in rows:
        if row.calculated_score is None and row.scoring is not None:
            row = score_row(row, row.scoring)
        out.append(row)
    return out


def apply_scoring(
    bundle: UnifiedLocationData,
    overrides: Optional[OverrideTable] = None,
    model: ScoringModel = SCORING_MODEL,
) -> UnifiedLocationData:
    """Return a new bundle with every tabular row scored against national."""
    residential = bundle.residential
    if residential is not None:
        residential = replace(residential, rows=_keep_precomputed(residential.rows))
    scored = replace(
        bundle,
        demographics=_score_levels(bundle.demographics, SourceType.DEMOGRAPHICS, overrides, model),
        health=_score_levels(bundle.health, SourceType.HEALTH, overrides, model),
        livability=_score_levels(bundle.livability, SourceType.LIVABILITY, overrides, model),
        safety=_score_levels(bundle.safety, SourceType.SAFETY, overrides, model),
        amenities=_keep_precomputed(bundle.amenities),
        residential=residential,
    )
    logger.debug("Applied scoring model %s to %s", model.version, bundle.location.address)
    return scored


# =============================================================================
# Import-time validation (raises ValueError so it is never stripped by -O)
# =============================================================================

for _source, _table in SCORING_MODEL.indicator_overrides.items():
    for _key, _override in _table.items():
        if not is_known_key(_source, _key):
            raise ValueError(f"Scoring override for unknown {_source.value} indicator {_key!r}")
        # building the config runs ScoringConfig validation
        _override.apply_to(SCORING_MODEL.default)
for _source, _override in SCORING_MODEL.source_defaults.items():
    _override.apply_to(SCORING_MODEL.default)
