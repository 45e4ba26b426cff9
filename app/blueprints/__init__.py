"""
Survey Report Platform
Blueprint registry.
"""

from flask import request


def parse_bool_arg(name: str, default: bool = False) -> bool:
    """Read a boolean flag from the query string or JSON body."""
    raw = request.args.get(name)
    if raw is None and request.is_json:
        raw = (request.get_json(silent=True) or {}).get(name)
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ("1", "true", "yes", "on")
