"""Weighted consistent-hash ring used for stable variant assignment."""

from __future__ import annotations

import bisect
import hashlib
from collections.abc import Mapping


class ConsistentHashRing:
    """Consistent hash ring with weighted virtual nodes.

    Each variant gets a share of ``virtual_nodes`` proportional to its
    weight. Routing a key always yields the same variant for the same ring,
    and changing one weight only moves the keys near the affected nodes.
    """

    def __init__(self, weights: Mapping[str, float], virtual_nodes: int = 100) -> None:
        self.weights = {name: weight for name, weight in weights.items() if weight > 0}
        self.virtual_nodes = virtual_nodes
        self._ring: dict[int, str] = {}
        self._sorted_keys: list[int] = []
        self._build()

    @staticmethod
    def _h64(value: str) -> int:
        digest = hashlib.sha256(value.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") & ((1 << 63) - 1)

    def _build(self) -> None:
        total = sum(self.weights.values()) or 1
        for name, weight in sorted(self.weights.items()):
            vnode_count = max(1, round(weight / total * self.virtual_nodes))
            for i in range(vnode_count):
                self._ring[self._h64(f"{name}#{i}")] = name
        self._sorted_keys = sorted(self._ring)

    def __len__(self) -> int:
        return len(self._sorted_keys)

    def route(self, key: str) -> str | None:
        """Variant owning ``key``, or None for an empty ring."""
        if not self._sorted_keys:
            return None
        index = bisect.bisect_left(self._sorted_keys, self._h64(key))
        if index == len(self._sorted_keys):
            index = 0
        return self._ring[self._sorted_keys[index]]
