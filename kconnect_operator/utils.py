"""Small helpers: deployment condition lookup, property-to-env mapping and FNV-1a hashing."""

from __future__ import annotations

from typing import Any, Iterable, Optional

_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3
_MASK64 = (1 << 64) - 1


def find_status_deployment_condition(
    conditions: Iterable[dict[str, Any]], condition_type: str
) -> Optional[dict[str, Any]]:
    """Return the deployment condition of the given type, or None."""
    return next((c for c in conditions if c.get("type") == condition_type), None)


def properties_to_envs(properties: dict[str, str]) -> list[dict[str, str]]:
    """Turn properties into KAFKA_* environment variables ("a.b" becomes KAFKA_A_B)."""
    return [
        {"name": f"KAFKA_{key.replace('.', '_').upper()}", "value": value}
        for key, value in properties.items()
    ]


def fnv64a(chunks: Iterable[bytes]) -> int:
    """FNV-1a 64-bit hash over the concatenation of the chunks."""
    h = _FNV64_OFFSET
    for chunk in chunks:
        for byte in chunk:
            h ^= byte
            h = (h * _FNV64_PRIME) & _MASK64
    return h


def fnv_hash_string(s: str) -> str:
    """FNV-1a 64-bit hash of a string as lower-case hex without padding."""
    return format(fnv64a([s.encode()]), "x")