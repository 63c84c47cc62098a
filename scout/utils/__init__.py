"""Shared utility helpers used across connectors and services."""


def safe_int(v):
    """Safely convert a value to int, returning None on failure."""
    if v is None:
        return None
    try:
        return int(v)
    except (ValueError, TypeError):
        return None


def safe_float(v):
    """Safely convert a value to float, returning None on failure."""
    if v is None:
        return None
    try:
        return float(v)
    except (ValueError, TypeError):
        return None


def clamp_score(v) -> int | None:
    """Coerce a collaborator score into the 0-100 range, None if not numeric."""
    f = safe_float(v)
    if f is None:
        return None
    return int(round(min(max(f, 0.0), 100.0)))
