"""JSON codec for cached permission snapshots.

An entry holds the stamp it was computed under, the identity's roles in
assignment order and its effective permissions:

    {"stamp": [3, 1], "roles": ["admin"], "permissions": {"__set__": ["create-post"]}}
"""

import json
from typing import Any


class CacheEncoder(json.JSONEncoder):
    """JSON encoder tagging sets so they decode back to ``frozenset``.

    Set members are sorted, so equal snapshots encode identically.
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, set | frozenset):
            return {"__set__": sorted(obj)}
        return super().default(obj)


def serialize(value: Any) -> str:
    return json.dumps(value, cls=CacheEncoder)


def deserialize(data: str) -> Any:
    return json.loads(data, object_hook=_decode_hook)


def encode_entry(
    stamp: tuple[int, int], roles: tuple[str, ...], permissions: frozenset[str]
) -> str:
    """Encode a cache entry.

    Args:
        stamp: (generation, version) the snapshot was computed under
        roles: Role names in assignment order
        permissions: Effective permission names

    Returns:
        JSON string
    """
    return serialize(
        {"stamp": list(stamp), "roles": list(roles), "permissions": permissions}
    )


def decode_entry(
    data: str,
) -> tuple[tuple[int, int], tuple[str, ...], frozenset[str]]:
    """Decode an entry written by ``encode_entry``.

    Raises:
        ValueError: If the payload is not a well-formed entry
    """
    try:
        value = deserialize(data)
        generation, version = value["stamp"]
        return (
            (int(generation), int(version)),
            tuple(value["roles"]),
            frozenset(value["permissions"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Malformed permission cache entry: {exc}") from exc


def _decode_hook(obj: dict[str, Any]) -> Any:
    if "__set__" in obj:
        return frozenset(obj["__set__"])
    return obj
