"""JSON persistence format for ``AgentMemory``.

Mapping-valued fields are written as explicit ``[[key, value], ...]``
pair lists and datetimes as ISO-8601 strings.  Loading accepts either
pair lists or plain objects, and documents written before newer fields
existed simply pick up the model defaults (empty collections).
"""

from __future__ import annotations

import json
from typing import Any

from trustledger.models.memory import AgentMemory

PAIR_LIST_FIELDS: tuple[str, ...] = ("trust_levels", "relationships", "commitments")


def _to_pairs(mapping: dict[str, Any]) -> list[list[Any]]:
    return [[key, value] for key, value in mapping.items()]


def _from_pairs(value: Any) -> Any:
    # Malformed lists are passed through for model validation to reject
    if isinstance(value, list) and all(_is_pair(item) for item in value):
        return {key: item for key, item in value}
    return value


def _is_pair(item: Any) -> bool:
    return isinstance(item, (list, tuple)) and len(item) == 2 and isinstance(item[0], str)


def serialize_memory(memory: AgentMemory) -> str:
    """Dump *memory* to a pretty-printed JSON document."""
    data = memory.model_dump(mode="json")
    for field_name in PAIR_LIST_FIELDS:
        data[field_name] = _to_pairs(data[field_name])
    return json.dumps(data, indent=2)


def deserialize_memory(raw: str | bytes) -> AgentMemory:
    """Rebuild an ``AgentMemory`` from ``serialize_memory`` output.

    Raises ``json.JSONDecodeError`` or ``pydantic.ValidationError`` on
    documents that cannot be repaired.
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        return AgentMemory.model_validate(data)
    for field_name in PAIR_LIST_FIELDS:
        if data.get(field_name) is not None:
            data[field_name] = _from_pairs(data[field_name])
        else:
            data.pop(field_name, None)
    # Older documents predate the roster field
    if not data.get("roster") and data.get("party"):
        data["roster"] = [data["party"], *_keys(data.get("relationships"))]
    return AgentMemory.model_validate(data)


def _keys(mapping: Any) -> list[str]:
    return list(mapping) if isinstance(mapping, dict) else []
