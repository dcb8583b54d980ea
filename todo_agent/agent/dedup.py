from __future__ import annotations

import json
from typing import Any


def invocation_signature(tool_name: str, arguments: dict[str, Any] | None) -> str:
    """Canonical identity of an invocation: name plus key-sorted JSON arguments."""
    encoded = json.dumps(arguments or {}, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return f"{tool_name}:{encoded}"


class InvocationDeduplicator:
    """Per-run set of executed signatures; a signature is claimed at most once."""

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def __contains__(self, signature: str) -> bool:
        return signature in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def claim(self, signature: str) -> bool:
        if signature in self._seen:
            return False
        self._seen.add(signature)
        return True

    @property
    def seen(self) -> frozenset[str]:
        return frozenset(self._seen)
