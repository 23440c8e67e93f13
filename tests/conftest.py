"""Shared fixtures for the BuurtScore test suite.

Provides a Flask test client wired to a temporary SQLite database and a
small but realistic provider payload for one Utrecht address.
"""

import atexit
import copy
import os
import tempfile

import pytest

# Point the DB at a temp file BEFORE importing app/models (they read DB_PATH at import time)
_test_db_fd, _test_db_path = tempfile.mkstemp(suffix=".db")
os.close(_test_db_fd)  # close the fd immediately; sqlite3 opens its own handle
os.environ["BUURTSCORE_DB_PATH"] = _test_db_path
atexit.register(lambda: os.unlink(_test_db_path) if os.path.exists(_test_db_path) else None)

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.pop("SENTRY_DSN", None)
# the whole suite shares one in-memory limiter
os.environ["RATE_LIMIT_DEFAULT"] = "10000/minute"
os.environ["RATE_LIMIT_EVAL"] = "10000/minute"

from app import app  # noqa: E402
from models import init_db, _get_db  # noqa: E402
from location_data import (  # noqa: E402
    AreaDescriptor,
    GeographicLevel,
    LevelResponse,
    LocationData,
)


@pytest.fixture(autouse=True)
def _fresh_db():
    """Reset the database before every test, keeping the schema."""
    init_db()
    conn = _get_db()
    for table in ("location_cache", "snapshots"):
        conn.execute(f"DELETE FROM {table}")
    conn.commit()
    conn.close()
    yield


@pytest.fixture()
def client():
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


# =========================================================================
# Sample provider data
# =========================================================================
#
# National:      17,000,000 residents, 16% aged 0-15, income 40.0
# Utrecht:          360,000 residents, 16% aged 0-15, income 44.0
# Domplein:           2,000 residents, 24% aged 0-15, income 50.0

_DEMOGRAPHICS = {
    "national": {
        "level_code": "NL01", "level_name": "Nederland",
        "raw": {
            "ID": 1,
            "AantalInwoners_5": 17000000,
            "k_0Tot15Jaar_8": 2720000,
            "GemiddeldInkomenPerInkomensontvanger_71": 40.0,
        },
    },
    "municipality": {
        "level_code": "GM0344", "level_name": "Utrecht",
        "raw": {
            "AantalInwoners_5": 360000,
            "k_0Tot15Jaar_8": 57600,
            "GemiddeldInkomenPerInkomensontvanger_71": 44.0,
        },
    },
    "district": {
        "level_code": "WK034401", "level_name": "Binnenstad",
        "raw": {
            "AantalInwoners_5": 20000,
            "k_0Tot15Jaar_8": 3000,
            "GemiddeldInkomenPerInkomensontvanger_71": 46.0,
        },
    },
    "neighborhood": {
        "level_code": "BU03440101", "level_name": "Domplein",
        "raw": {
            "AantalInwoners_5": 2000,
            "k_0Tot15Jaar_8": 480,
            "GemiddeldInkomenPerInkomensontvanger_71": 50.0,
        },
    },
}

_HEALTH = {
    "national": {"level_code": "NL01", "level_name": "Nederland",
                 "raw": {"Roker_11": 20.0, "ErvarenGezondheidGoedZeerGoed_4": 80.0}},
    "municipality": {"level_code": "GM0344", "level_name": "Utrecht",
                     "raw": {"Roker_11": 22.0, "ErvarenGezondheidGoedZeerGoed_4": 80.0}},
    "neighborhood": {"level_code": "BU03440101", "level_name": "Domplein",
                     "raw": {"Roker_11": 25.0, "ErvarenGezondheidGoedZeerGoed_4": "n/a"}},
}

_LIVABILITY = {
    "national": {"level_code": "NL01", "level_name": "Nederland",
                 "raw": {"RapportcijferLeefbaarheidWoonbuurt_18": 7.5, "Geluidsoverlast_39": 10.0}},
    "municipality": {"level_code": "GM0344", "level_name": "Utrecht",
                     "raw": {"RapportcijferLeefbaarheidWoonbuurt_18": 7.875, "Geluidsoverlast_39": 12.0}},
}

_SAFETY = {
    "national": {"level_code": "NL01", "level_name": "Nederland",
                 "raw": {"Crime_0.0.0": 850000, "Crime_1.1.1": 51000}},
    "municipality": {"level_code": "GM0344", "level_name": "Utrecht",
                     "raw": {"Crime_0.0.0": 27000, "Crime_1.1.1": 1080}},
    "neighborhood": {"level_code": "BU03440101", "level_name": "Domplein",
                     "raw": {"Crime_0.0.0": 100, "Crime_1.1.1": "."}},
}

_AMENITIES = [
    {"category_id": "zorg_primair", "places": [
        {"name": "Huisartsenpraktijk Dom", "distance_m": 180},
        {"name": "Apotheek Centrum", "distance_m": 420},
    ]},
    {"category_id": "openbaar_vervoer", "places": [
        {"name": "Bushalte Domplein", "distance_m": 90},
    ], "count": 8},
    {"category_id": "winkels_dagelijks", "places": []},
]

_HOUSES = [
    {"house_type": "Portiekwoning", "inner_surface_area": 55, "transaction_price": "250000-275000", "build_year": 1930},
    {"house_type": "Galerijflat", "inner_surface_area": 72, "transaction_price": "325000-350000", "build_year": 1975},
    {"house_type": "Tussen/rijwoning", "inner_surface_area": 118, "transaction_price": "550000-575000", "build_year": 1910},
]

_LOCATION = {
    "address": "Domplein 1, Utrecht",
    "latitude": 52.0907,
    "longitude": 5.1214,
    "municipality": {"code": "GM0344", "name": "Utrecht"},
    "district": {"code": "WK034401", "name": "Binnenstad"},
    "neighborhood": {"code": "BU03440101", "name": "Domplein"},
}


@pytest.fixture()
def evaluation_payload():
    """JSON body for POST /api/evaluate (a fresh deep copy per test)."""
    return copy.deepcopy({
        "location": _LOCATION,
        "demographics": _DEMOGRAPHICS,
        "health": _HEALTH,
        "livability": _LIVABILITY,
        "safety": _SAFETY,
        "amenities": _AMENITIES,
        "reference_houses": _HOUSES,
    })


@pytest.fixture()
def location():
    return LocationData(
        address="Domplein 1, Utrecht",
        municipality=AreaDescriptor("GM0344", "Utrecht"),
        district=AreaDescriptor("WK034401", "Binnenstad"),
        neighborhood=AreaDescriptor("BU03440101", "Domplein"),
    )


def _responses(table):
    return {
        GeographicLevel(level): LevelResponse(d["level_code"], d["level_name"], copy.deepcopy(d["raw"]))
        for level, d in table.items()
    }


@pytest.fixture()
def demographics():
    return _responses(_DEMOGRAPHICS)


@pytest.fixture()
def health():
    return _responses(_HEALTH)


@pytest.fixture()
def livability():
    return _responses(_LIVABILITY)


@pytest.fixture()
def safety():
    return _responses(_SAFETY)
