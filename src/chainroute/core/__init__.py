"""
chainroute.core - ambient primitives shared by the engine.

MODULE MAP
──────────
errors.py    ─ RouterError hierarchy
logging.py   ─ structlog configuration and loggers
settings.py  ─ RouterSettings (pydantic-settings)
"""
