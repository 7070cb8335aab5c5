"""
JSON text columns.

Embedded documents (time slots, order quantities, gift snapshots, bill lines)
are stored as JSON text and exposed through model properties.
"""
import json


def load_json(raw, default):
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return default


def dump_json(value):
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)
