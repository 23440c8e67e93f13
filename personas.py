"""
Housing persona catalogue, preference mappings and shared spaces.

Static configuration only: nothing here reads a location.  persona_ranking.py
combines these tables with scored location rows.

A persona is described by three descriptors (income, household, age).  Each
scoring mapping names one subcategory and says which descriptor value cares
about it most, on average, and least; a persona's multiplier for that
subcategory is 3 / 2 / 1 accordingly, 0 when its descriptor matches none.
"""

import re
import unicodedata
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

# =============================================================================
# Descriptor vocabulary
# =============================================================================

CHAR_INCOME = "Inkomen"
CHAR_HOUSEHOLD = "Huishouden"
CHAR_AGE = "Leeftijd"
CHARACTERISTIC_TYPES = (CHAR_INCOME, CHAR_HOUSEHOLD, CHAR_AGE)

INCOME_LOW = "Laag inkomen"
INCOME_MID = "Gemiddeld inkomen"
INCOME_HIGH = "Hoog inkomen"
INCOME_LEVELS = (INCOME_LOW, INCOME_MID, INCOME_HIGH)

HH_SINGLE = "1persoons"
HH_COUPLE = "2persoons"
HH_FAMILY = "met kinderen"
HOUSEHOLD_TYPES = (HH_SINGLE, HH_COUPLE, HH_FAMILY)

AGE_YOUNG = "20-35"
AGE_MIDDLE = "35-55"
AGE_SENIOR = "55+"
AGE_GROUPS = (AGE_YOUNG, AGE_MIDDLE, AGE_SENIOR)

DESCRIPTORS: Dict[str, Tuple[str, ...]] = {
    CHAR_INCOME: INCOME_LEVELS,
    CHAR_HOUSEHOLD: HOUSEHOLD_TYPES,
    CHAR_AGE: AGE_GROUPS,
}

# Spelling variants seen in persona exports, keyed with spaces/hyphens removed.
_DESCRIPTOR_ALIASES = {
    "laaginkomen": INCOME_LOW,
    "lowincome": INCOME_LOW,
    "gemiddeldinkomen": INCOME_MID,
    "middeninkomen": INCOME_MID,
    "averageincome": INCOME_MID,
    "hooginkomen": INCOME_HIGH,
    "highincome": INCOME_HIGH,
    "1persoons": HH_SINGLE,
    "1persoonshuishouden": HH_SINGLE,
    "1personhousehold": HH_SINGLE,
    "2persoons": HH_COUPLE,
    "2persoonshuishouden": HH_COUPLE,
    "2personhousehold": HH_COUPLE,
    "metkinderen": HH_FAMILY,
    "withchildren": HH_FAMILY,
    "2035": AGE_YOUNG,
    "2035jaar": AGE_YOUNG,
    "2035years": AGE_YOUNG,
    "3555": AGE_MIDDLE,
    "3555jaar": AGE_MIDDLE,
    "3555years": AGE_MIDDLE,
    "55+": AGE_SENIOR,
    "55+jaar": AGE_SENIOR,
    "55+years": AGE_SENIOR,
}


def normalize_descriptor(value: str) -> str:
    """Canonical descriptor for *value*; unknown spellings pass through."""
    squashed = re.sub(r"[\s\-]", "", str(value).lower())
    return _DESCRIPTOR_ALIASES.get(squashed, value)


def slugify(name: str) -> str:
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", ascii_name.lower()).strip("-")


# =============================================================================
# Scoring mappings
# =============================================================================

CAT_VOORZIENINGEN = "voorzieningen"
CAT_LEEFBAARHEID = "leefbaarheid"
CAT_WONINGVOORRAAD = "woningvoorraad"
CAT_DEMOGRAFIE = "demografie"
CATEGORIES = (CAT_VOORZIENINGEN, CAT_LEEFBAARHEID, CAT_WONINGVOORRAAD, CAT_DEMOGRAFIE)

INCOME_BRACKET_LOW = "Gemiddeld Inkomen Per Inkomensontvanger (laag <80% of mediaan)"
INCOME_BRACKET_MID = "Gemiddeld Inkomen Per Inkomensontvanger (medium >80% <120% of mediaan)"
INCOME_BRACKET_HIGH = "Gemiddeld Inkomen Per Inkomensontvanger (hoog >120% of mediaan)"
INCOME_BRACKETS = (INCOME_BRACKET_LOW, INCOME_BRACKET_MID, INCOME_BRACKET_HIGH)


@dataclass(frozen=True)
class ScoringMapping:
    category: str
    subcategory: str
    characteristic_type: str
    most: str
    average: str
    least: str

    def multiplier_for(self, descriptor: str) -> int:
        if descriptor == self.most:
            return 3
        if descriptor == self.average:
            return 2
        if descriptor == self.least:
            return 1
        return 0


def _m(category, subcategory, characteristic, most, average, least) -> ScoringMapping:
    return ScoringMapping(category, subcategory, characteristic, most, average, least)


_V, _L, _W, _D = CAT_VOORZIENINGEN, CAT_LEEFBAARHEID, CAT_WONINGVOORRAAD, CAT_DEMOGRAFIE

SCORING_MAPPINGS: Tuple[ScoringMapping, ...] = (
    # Voorzieningen: subcategory names match amenity category names
    _m(_V, "Zorg (Huisarts & Apotheek)", CHAR_AGE, AGE_SENIOR, AGE_MIDDLE, AGE_YOUNG),
    _m(_V, "Zorg (Paramedische voorzieningen)", CHAR_AGE, AGE_SENIOR, AGE_MIDDLE, AGE_YOUNG),
    _m(_V, "Openbaar vervoer (halte)", CHAR_INCOME, INCOME_LOW, INCOME_MID, INCOME_HIGH),
    _m(_V, "Mobiliteit & Parkeren", CHAR_INCOME, INCOME_HIGH, INCOME_MID, INCOME_LOW),
    _m(_V, "Onderwijs (Basisschool)", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_V, "Onderwijs (Voortgezet onderwijs)", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_V, "Onderwijs (Hoger onderwijs)", CHAR_AGE, AGE_YOUNG, AGE_MIDDLE, AGE_SENIOR),
    _m(_V, "Kinderopvang & Opvang", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_V, "Winkels (Dagelijkse boodschappen)", CHAR_AGE, AGE_SENIOR, AGE_MIDDLE, AGE_YOUNG),
    _m(_V, "Winkels (Overige retail)", CHAR_INCOME, INCOME_HIGH, INCOME_MID, INCOME_LOW),
    _m(_V, "Budget Restaurants (€)", CHAR_INCOME, INCOME_LOW, INCOME_MID, INCOME_HIGH),
    _m(_V, "Mid-range Restaurants (€€€)", CHAR_INCOME, INCOME_MID, INCOME_HIGH, INCOME_LOW),
    _m(_V, "Upscale Restaurants (€€€€-€€€€€)", CHAR_INCOME, INCOME_HIGH, INCOME_MID, INCOME_LOW),
    _m(_V, "Cafés en avond programma", CHAR_AGE, AGE_YOUNG, AGE_MIDDLE, AGE_SENIOR),
    _m(_V, "Sport faciliteiten", CHAR_HOUSEHOLD, HH_FAMILY, HH_SINGLE, HH_COUPLE),
    _m(_V, "Sportschool / Fitnesscentrum", CHAR_AGE, AGE_YOUNG, AGE_MIDDLE, AGE_SENIOR),
    _m(_V, "Groen & Recreatie", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_V, "Cultuur & Entertainment", CHAR_INCOME, INCOME_HIGH, INCOME_MID, INCOME_LOW),
    _m(_V, "Wellness & Recreatie", CHAR_AGE, AGE_SENIOR, AGE_MIDDLE, AGE_YOUNG),
    _m(_V, "Zakelijke diensten", CHAR_AGE, AGE_MIDDLE, AGE_YOUNG, AGE_SENIOR),

    # Leefbaarheid
    _m(_L, "Rapportcijfer Leefbaarheid Woonbuurt", CHAR_AGE, AGE_SENIOR, AGE_MIDDLE, AGE_YOUNG),
    _m(_L, "Sociale Cohesie Schaalscore", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_L, "Speelplekken Voor Kinderen", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_L, "Voelt Zich Vaak Onveilig", CHAR_AGE, AGE_SENIOR, AGE_MIDDLE, AGE_YOUNG),
    _m(_L, "Geluidsoverlast", CHAR_AGE, AGE_SENIOR, AGE_MIDDLE, AGE_YOUNG),
    _m(_L, "Totaal misdrijven", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_L, "Diefstal/inbraak woning", CHAR_INCOME, INCOME_HIGH, INCOME_MID, INCOME_LOW),

    # Woningvoorraad
    _m(_W, "Percentage eengezinswoning", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_W, "Percentage meergezinswoning", CHAR_HOUSEHOLD, HH_SINGLE, HH_COUPLE, HH_FAMILY),
    _m(_W, "In Bezit Woningcorporatie", CHAR_INCOME, INCOME_LOW, INCOME_MID, INCOME_HIGH),
    _m(_W, "In Bezit Overige Verhuurders", CHAR_INCOME, INCOME_MID, INCOME_LOW, INCOME_HIGH),
    _m(_W, "Woningtype - Hoogstedelijk", CHAR_AGE, AGE_YOUNG, AGE_MIDDLE, AGE_SENIOR),
    _m(_W, "Woningtype - Randstedelijk", CHAR_HOUSEHOLD, HH_COUPLE, HH_FAMILY, HH_SINGLE),
    _m(_W, "Woningtype - Laagstedelijk", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_W, "Klein (< 60m²)", CHAR_HOUSEHOLD, HH_SINGLE, HH_COUPLE, HH_FAMILY),
    _m(_W, "Midden (60-110m²)", CHAR_HOUSEHOLD, HH_COUPLE, HH_FAMILY, HH_SINGLE),
    _m(_W, "Groot (> 110m²)", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_W, "Laag (< €350k)", CHAR_INCOME, INCOME_LOW, INCOME_MID, INCOME_HIGH),
    _m(_W, "Midden (€350k-€525k)", CHAR_INCOME, INCOME_MID, INCOME_HIGH, INCOME_LOW),
    _m(_W, "Hoog (> €525k)", CHAR_INCOME, INCOME_HIGH, INCOME_MID, INCOME_LOW),

    # Demografie
    _m(_D, "Aandeel 0 tot 15 jaar", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_D, "Aandeel 15 tot 25 jaar", CHAR_AGE, AGE_YOUNG, AGE_MIDDLE, AGE_SENIOR),
    _m(_D, "Aandeel 25 tot 45 jaar", CHAR_AGE, AGE_YOUNG, AGE_MIDDLE, AGE_SENIOR),
    _m(_D, "Aandeel 45 tot 65 jaar", CHAR_AGE, AGE_MIDDLE, AGE_SENIOR, AGE_YOUNG),
    _m(_D, "Aandeel 65 jaar of ouder", CHAR_AGE, AGE_SENIOR, AGE_MIDDLE, AGE_YOUNG),
    _m(_D, "Aandeel eenpersoonshuishoudens", CHAR_HOUSEHOLD, HH_SINGLE, HH_COUPLE, HH_FAMILY),
    _m(_D, "Aandeel huishoudens zonder kinderen", CHAR_HOUSEHOLD, HH_COUPLE, HH_SINGLE, HH_FAMILY),
    _m(_D, "Aandeel huishoudens met kinderen", CHAR_HOUSEHOLD, HH_FAMILY, HH_COUPLE, HH_SINGLE),
    _m(_D, INCOME_BRACKET_LOW, CHAR_INCOME, INCOME_LOW, INCOME_MID, INCOME_HIGH),
    _m(_D, INCOME_BRACKET_MID, CHAR_INCOME, INCOME_MID, INCOME_LOW, INCOME_HIGH),
    _m(_D, INCOME_BRACKET_HIGH, CHAR_INCOME, INCOME_HIGH, INCOME_MID, INCOME_LOW),
)


# =============================================================================
# Row title -> subcategory
# =============================================================================

# Data-table titles that differ from the subcategory vocabulary above.
# Titles not listed here are used verbatim.  Amenity categories score on
# their 250 m proximity row; the count rows have no subcategory.
TITLE_MAPPING: Dict[str, str] = {
    "Zorg (Huisarts & Apotheek) - Nabijheid (250m)": "Zorg (Huisarts & Apotheek)",
    "Zorg (Paramedische voorzieningen) - Nabijheid (250m)": "Zorg (Paramedische voorzieningen)",
    "Openbaar vervoer (halte) - Nabijheid (250m)": "Openbaar vervoer (halte)",
    "Mobiliteit & Parkeren - Nabijheid (250m)": "Mobiliteit & Parkeren",
    "Onderwijs (Basisschool) - Nabijheid (250m)": "Onderwijs (Basisschool)",
    "Onderwijs (Voortgezet onderwijs) - Nabijheid (250m)": "Onderwijs (Voortgezet onderwijs)",
    "Onderwijs (Hoger onderwijs) - Nabijheid (250m)": "Onderwijs (Hoger onderwijs)",
    "Kinderopvang & Opvang - Nabijheid (250m)": "Kinderopvang & Opvang",
    "Winkels (Dagelijkse boodschappen) - Nabijheid (250m)": "Winkels (Dagelijkse boodschappen)",
    "Winkels (Overige retail) - Nabijheid (250m)": "Winkels (Overige retail)",
    "Budget Restaurants (€) - Nabijheid (250m)": "Budget Restaurants (€)",
    "Mid-range Restaurants (€€€) - Nabijheid (250m)": "Mid-range Restaurants (€€€)",
    "Upscale Restaurants (€€€€-€€€€€) - Nabijheid (250m)": "Upscale Restaurants (€€€€-€€€€€)",
    "Cafés en avond programma - Nabijheid (250m)": "Cafés en avond programma",
    "Sport faciliteiten - Nabijheid (250m)": "Sport faciliteiten",
    "Sportschool / Fitnesscentrum - Nabijheid (250m)": "Sportschool / Fitnesscentrum",
    "Groen & Recreatie - Nabijheid (250m)": "Groen & Recreatie",
    "Cultuur & Entertainment - Nabijheid (250m)": "Cultuur & Entertainment",
    "Wellness & Recreatie - Nabijheid (250m)": "Wellness & Recreatie",
    "Zakelijke diensten - Nabijheid (250m)": "Zakelijke diensten",

    "Percentage Eengezinswoning": "Percentage eengezinswoning",
    "Percentage Meergezinswoning": "Percentage meergezinswoning",
    "Hoog stedelijk": "Woningtype - Hoogstedelijk",
    "Rand stedelijk": "Woningtype - Randstedelijk",
    "Laag stedelijk": "Woningtype - Laagstedelijk",

    "0 Tot 15 Jaar": "Aandeel 0 tot 15 jaar",
    "15 Tot 25 Jaar": "Aandeel 15 tot 25 jaar",
    "25 Tot 45 Jaar": "Aandeel 25 tot 45 jaar",
    "45 Tot 65 Jaar": "Aandeel 45 tot 65 jaar",
    "65 Jaar Of Ouder": "Aandeel 65 jaar of ouder",
    "Eenpersoonshuishoudens": "Aandeel eenpersoonshuishoudens",
    "Huishoudens Zonder Kinderen": "Aandeel huishoudens zonder kinderen",
    "Huishoudens Met Kinderen": "Aandeel huishoudens met kinderen",
}

# Rows with this key are split into the three INCOME_BRACKETS instead of
# going through TITLE_MAPPING.
INCOME_INDICATOR_KEY = "GemiddeldInkomenPerInkomensontvanger_71"


def subcategory_for_title(title: str) -> str:
    return TITLE_MAPPING.get(title, title)


# =============================================================================
# Personas
# =============================================================================

@dataclass(frozen=True)
class PersonaWeight:
    category: str
    subcategory: str
    characteristic_type: str
    multiplier: int


@dataclass(frozen=True)
class Persona:
    id: str
    name: str
    income_level: str
    household_type: str
    age_group: str
    weights: Tuple[PersonaWeight, ...] = field(default=(), compare=False)

    def descriptor(self, characteristic_type: str) -> Optional[str]:
        if characteristic_type == CHAR_INCOME:
            return normalize_descriptor(self.income_level)
        if characteristic_type == CHAR_HOUSEHOLD:
            return normalize_descriptor(self.household_type)
        if characteristic_type == CHAR_AGE:
            return normalize_descriptor(self.age_group)
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "income_level": self.income_level,
            "household_type": self.household_type,
            "age_group": self.age_group,
        }


def derive_weights(
    persona: Persona,
    mappings: Tuple[ScoringMapping, ...] = SCORING_MAPPINGS,
) -> Tuple[PersonaWeight, ...]:
    """One PersonaWeight per mapping, in mapping order (zero multipliers kept)."""
    out = []
    for m in mappings:
        descriptor = persona.descriptor(m.characteristic_type)
        multiplier = m.multiplier_for(descriptor) if descriptor is not None else 0
        out.append(PersonaWeight(m.category, m.subcategory, m.characteristic_type, multiplier))
    return tuple(out)


def make_persona(name: str, income_level: str, household_type: str, age_group: str) -> Persona:
    base = Persona(slugify(name), name, income_level, household_type, age_group)
    return replace(base, weights=derive_weights(base))


# (name, income, household, age)
_PERSONA_TABLE = (
    ("Hard van Start", INCOME_LOW, HH_SINGLE, AGE_YOUNG),
    ("De Doorzetter", INCOME_LOW, HH_SINGLE, AGE_MIDDLE),
    ("Zelfstandige Senior", INCOME_LOW, HH_SINGLE, AGE_SENIOR),
    ("Samen Starters", INCOME_LOW, HH_COUPLE, AGE_YOUNG),
    ("Bescheiden Stellen", INCOME_LOW, HH_COUPLE, AGE_MIDDLE),
    ("Senior op Budget", INCOME_LOW, HH_COUPLE, AGE_SENIOR),
    ("De Groeiers", INCOME_LOW, HH_FAMILY, AGE_YOUNG),
    ("Knusse Gezinnen", INCOME_LOW, HH_FAMILY, AGE_MIDDLE),
    ("Gezellige Nesthouders", INCOME_LOW, HH_FAMILY, AGE_SENIOR),
    ("Carrièrestarter", INCOME_MID, HH_SINGLE, AGE_YOUNG),
    ("Zelfbewuste Solisten", INCOME_MID, HH_SINGLE, AGE_MIDDLE),
    ("Laat Bloeiers", INCOME_MID, HH_SINGLE, AGE_SENIOR),
    ("Jonge Starters", INCOME_MID, HH_COUPLE, AGE_YOUNG),
    ("De Balanszoekers", INCOME_MID, HH_COUPLE, AGE_MIDDLE),
    ("De Levensgenieters", INCOME_MID, HH_COUPLE, AGE_SENIOR),
    ("Actieve Jonge Gezinnen", INCOME_MID, HH_FAMILY, AGE_YOUNG),
    ("Stabiele Gezinnen", INCOME_MID, HH_FAMILY, AGE_MIDDLE),
    ("Senioren met Thuiswonende Kinderen", INCOME_MID, HH_FAMILY, AGE_SENIOR),
    ("Ambitieuze Singles", INCOME_HIGH, HH_SINGLE, AGE_YOUNG),
    ("Succesvolle Singles", INCOME_HIGH, HH_SINGLE, AGE_MIDDLE),
    ("De Rentenier", INCOME_HIGH, HH_SINGLE, AGE_SENIOR),
    ("Carrière Stampers", INCOME_HIGH, HH_COUPLE, AGE_YOUNG),
    ("Grenzeloos Duo", INCOME_HIGH, HH_COUPLE, AGE_MIDDLE),
    ("De Zwitserlevers", INCOME_HIGH, HH_COUPLE, AGE_SENIOR),
    ("De Groeigezinnen", INCOME_HIGH, HH_FAMILY, AGE_YOUNG),
    ("Vermogende Gezinnen", INCOME_HIGH, HH_FAMILY, AGE_MIDDLE),
    ("Welvarende Bourgondiërs", INCOME_HIGH, HH_FAMILY, AGE_SENIOR),
)

HOUSING_PERSONAS: Tuple[Persona, ...] = tuple(make_persona(*row) for row in _PERSONA_TABLE)
PERSONAS_BY_ID: Dict[str, Persona] = {p.id: p for p in HOUSING_PERSONAS}


def get_persona(persona_id: str) -> Persona:
    try:
        return PERSONAS_BY_ID[persona_id]
    except KeyError:
        raise ValueError(f"Unknown persona id: {persona_id!r}") from None


# =============================================================================
# Shared spaces (persona connections)
# =============================================================================

ALL_TARGET_GROUPS = "geschikt voor elke doelgroep"

SPACE_COMMUNAL = "communal"
SPACE_PUBLIC = "public"


@dataclass(frozen=True)
class SharedSpace:
    id: str
    name: str
    kind: str
    target_groups: Tuple[str, ...]

    @property
    def for_everyone(self) -> bool:
        return ALL_TARGET_GROUPS in self.target_groups


SHARED_SPACES: Tuple[SharedSpace, ...] = (
    SharedSpace("buurtkamer", "Buurtkamer", SPACE_COMMUNAL, (
        "Zelfstandige Senior", "Laat Bloeiers", "De Doorzetter", "Senior op Budget", "Hard van Start",
    )),
    SharedSpace("gedeelde-werkplek", "Gedeelde werkplek", SPACE_COMMUNAL, (
        "Carrièrestarter", "Ambitieuze Singles", "Carrière Stampers", "Zelfbewuste Solisten", "Jonge Starters",
    )),
    SharedSpace("gemeenschappelijke-keuken", "Gemeenschappelijke keuken", SPACE_COMMUNAL, (
        "Hard van Start", "Samen Starters", "Zelfbewuste Solisten", "De Doorzetter", "Zelfstandige Senior",
    )),
    SharedSpace("fitnessruimte", "Fitnessruimte", SPACE_COMMUNAL, (
        "Ambitieuze Singles", "Succesvolle Singles", "Carrièrestarter", "Grenzeloos Duo", "Carrière Stampers",
    )),
    SharedSpace("kinderopvang-aan-huis", "Kinderopvang aan huis", SPACE_COMMUNAL, (
        "De Groeiers", "Actieve Jonge Gezinnen", "De Groeigezinnen", "Knusse Gezinnen", "Stabiele Gezinnen",
    )),
    SharedSpace("logeerkamer", "Logeerkamer", SPACE_COMMUNAL, (
        "Senioren met Thuiswonende Kinderen", "Gezellige Nesthouders", "De Levensgenieters",
        "Welvarende Bourgondiërs", "De Balanszoekers",
    )),
    SharedSpace("wellnessruimte", "Wellnessruimte", SPACE_COMMUNAL, (
        "De Rentenier", "De Zwitserlevers", "Welvarende Bourgondiërs", "Succesvolle Singles", "Laat Bloeiers",
    )),
    SharedSpace("repair-cafe", "Repair café", SPACE_COMMUNAL, (
        "Hard van Start", "De Doorzetter", "Senior op Budget", "Bescheiden Stellen", "Gezellige Nesthouders",
    )),
    SharedSpace("deelauto-hub", "Deelauto-hub", SPACE_COMMUNAL, (
        "Samen Starters", "Jonge Starters", "Carrière Stampers", "De Balanszoekers", "Grenzeloos Duo",
    )),
    SharedSpace("fietsenwerkplaats", "Fietsenwerkplaats", SPACE_COMMUNAL, (
        "Jonge Starters", "Samen Starters", "Hard van Start", "Carrièrestarter", "Actieve Jonge Gezinnen",
    )),
    SharedSpace("buurttuin", "Buurttuin", SPACE_PUBLIC, (ALL_TARGET_GROUPS,)),
    SharedSpace("speeltuin", "Speeltuin", SPACE_PUBLIC, (
        "De Groeiers", "Knusse Gezinnen", "Actieve Jonge Gezinnen", "Stabiele Gezinnen",
        "De Groeigezinnen", "Vermogende Gezinnen",
    )),
    SharedSpace("ontmoetingsplein", "Ontmoetingsplein senioren", SPACE_PUBLIC, (
        "Zelfstandige Senior", "Senior op Budget", "Laat Bloeiers", "De Levensgenieters",
        "De Rentenier", "De Zwitserlevers",
    )),
    SharedSpace("moestuin", "Moestuin", SPACE_PUBLIC, (
        "De Levensgenieters", "Gezellige Nesthouders", "Senioren met Thuiswonende Kinderen",
        "Bescheiden Stellen", "Stabiele Gezinnen",
    )),
    SharedSpace("sportveld", "Sportveld", SPACE_PUBLIC, (
        "Actieve Jonge Gezinnen", "Stabiele Gezinnen", "Vermogende Gezinnen", "De Groeiers",
        "Senioren met Thuiswonende Kinderen",
    )),
    SharedSpace("proeflokaal", "Proeflokaal", SPACE_PUBLIC, (
        "De Zwitserlevers", "Welvarende Bourgondiërs", "De Rentenier", "Grenzeloos Duo", "Vermogende Gezinnen",
    )),
    SharedSpace("bibliotheekhoek", "Bibliotheekhoek", SPACE_PUBLIC, (ALL_TARGET_GROUPS,)),
)


# =============================================================================
# Import-time validation (ValueError, not assert, so never stripped by -O)
# =============================================================================

if len(PERSONAS_BY_ID) != len(HOUSING_PERSONAS):
    raise ValueError("Duplicate persona ids in HOUSING_PERSONAS")
_combos = {(p.income_level, p.household_type, p.age_group) for p in HOUSING_PERSONAS}
if len(_combos) != len(INCOME_LEVELS) * len(HOUSEHOLD_TYPES) * len(AGE_GROUPS):
    raise ValueError(f"HOUSING_PERSONAS covers {len(_combos)} descriptor combinations, expected 27")
for _p in HOUSING_PERSONAS:
    for _ct in CHARACTERISTIC_TYPES:
        if _p.descriptor(_ct) not in DESCRIPTORS[_ct]:
            raise ValueError(f"Persona {_p.id!r} has invalid {_ct} descriptor {_p.descriptor(_ct)!r}")

_seen_subcategories = set()
for _mapping in SCORING_MAPPINGS:
    if _mapping.category not in CATEGORIES:
        raise ValueError(f"Mapping {_mapping.subcategory!r} has unknown category {_mapping.category!r}")
    if _mapping.characteristic_type not in DESCRIPTORS:
        raise ValueError(f"Mapping {_mapping.subcategory!r} has unknown type {_mapping.characteristic_type!r}")
    _allowed = DESCRIPTORS[_mapping.characteristic_type]
    for _value in (_mapping.most, _mapping.average, _mapping.least):
        if _value not in _allowed:
            raise ValueError(f"Mapping {_mapping.subcategory!r} uses invalid descriptor {_value!r}")
    if _mapping.subcategory in _seen_subcategories:
        raise ValueError(f"Duplicate scoring mapping for {_mapping.subcategory!r}")
    _seen_subcategories.add(_mapping.subcategory)

_persona_names = {p.name for p in HOUSING_PERSONAS}
for _space in SHARED_SPACES:
    for _group in _space.target_groups:
        if _group != ALL_TARGET_GROUPS and _group not in _persona_names:
            raise ValueError(f"Shared space {_space.id!r} targets unknown persona {_group!r}")
