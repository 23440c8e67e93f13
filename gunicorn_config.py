"""
Gunicorn config.  when_ready creates the SQLite tables and sweeps expired
cache entries once, before workers start serving.
"""

import logging


def when_ready(server):
    """Initialise the database and drop stale cache entries."""
    logger = logging.getLogger("gunicorn.error")
    try:
        from models import LocationResultCache, init_db
        init_db()
        removed = LocationResultCache().cleanup_expired()
        logger.info("Startup cache sweep removed %d entries", removed)
    except Exception:
        logger.exception("Startup cache sweep failed")
