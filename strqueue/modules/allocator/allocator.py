"""
Tracking allocator for strqueue.

Every queue handle, list node and payload copy is obtained from and returned
to a TrackingAllocator, so leaks and double frees are observable from tests and
from the command shell. Allocations can be made to fail at random to exercise
the queue's failure paths.
"""

import logging
import random
from collections import Counter
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar

logger = logging.getLogger("strqueue.allocator")

T = TypeVar("T")

BLOCK_KINDS = ("queue", "node", "payload")


class TrackingAllocator:
    def __init__(self, fail_percent: int = 0, seed: Optional[int] = None):
        """
        Initialize allocator.

        Args:
            fail_percent: Probability (0-100) that any single allocation fails
            seed: Seed for the failure injection RNG (None = nondeterministic)
        """
        self.fail_percent = fail_percent
        self._rng = random.Random(seed)

        # (kind, id(obj)) -> obj; holding the object keeps its id from being reused
        self._blocks: Dict[Tuple[str, int], Any] = {}

        self.allocations: Counter = Counter()
        self.frees: Counter = Counter()
        self.failures: Counter = Counter()

    @property
    def fail_percent(self) -> int:
        return self._fail_percent

    @fail_percent.setter
    def fail_percent(self, value: int) -> None:
        if not 0 <= value <= 100:
            raise ValueError(f"fail_percent must be between 0 and 100, got {value}")
        self._fail_percent = value

    def reseed(self, seed: Optional[int]) -> None:
        """Restart the failure injection sequence."""
        self._rng = random.Random(seed)

    @property
    def live_blocks(self) -> int:
        """Number of blocks allocated and not yet freed."""
        return len(self._blocks)

    def live_count(self, kind: str) -> int:
        """Number of live blocks of one kind."""
        return sum(1 for block_kind, _ in self._blocks if block_kind == kind)

    def is_live(self, kind: str, obj: Any) -> bool:
        return (kind, id(obj)) in self._blocks

    # ---- allocation ----

    def alloc_queue(self, factory: Callable[[], T]) -> Optional[T]:
        """
        Allocate a queue handle.

        Args:
            factory: Zero-argument callable building the handle

        Returns:
            The new handle, or None if the allocation failed
        """
        return self._alloc("queue", factory)

    def alloc_node(self, factory: Callable[[], T]) -> Optional[T]:
        """Allocate a list node, or return None on failure."""
        return self._alloc("node", factory)

    def alloc_payload(self, node: Any, data: bytes) -> bool:
        """
        Allocate an independent copy of data and attach it to node.value.

        Args:
            node: Live node that will own the payload
            data: Bytes to copy (full length)

        Returns:
            True if the copy was made, False if the allocation failed
        """
        if self._inject_failure("payload"):
            return False

        node.value = bytes(bytearray(data))
        self._blocks[("payload", id(node))] = node
        self.allocations["payload"] += 1
        return True

    def _alloc(self, kind: str, factory: Callable[[], T]) -> Optional[T]:
        if self._inject_failure(kind):
            return None

        obj = factory()
        self._blocks[(kind, id(obj))] = obj
        self.allocations[kind] += 1
        return obj

    def _inject_failure(self, kind: str) -> bool:
        if self._fail_percent and self._rng.random() * 100 < self._fail_percent:
            self.failures[kind] += 1
            logger.info(f"Injected {kind} allocation failure", extra={"injected": True})
            return True
        return False

    # ---- release ----

    def free_queue(self, queue: Any) -> bool:
        return self._free("queue", queue)

    def free_node(self, node: Any) -> bool:
        if not self._free("node", node):
            return False
        node.next = None
        return True

    def free_payload(self, node: Any) -> bool:
        """Release the payload owned by node and clear node.value."""
        if not self._free("payload", node):
            return False
        node.value = None
        return True

    def _free(self, kind: str, obj: Any) -> bool:
        if self._blocks.pop((kind, id(obj)), None) is None:
            logger.error(f"Attempt to free {kind} block that is not allocated")
            return False
        self.frees[kind] += 1
        return True

    def summary(self) -> Dict[str, Dict[str, int]]:
        """Per-kind allocation statistics."""
        return {
            kind: {
                "allocated": self.allocations[kind],
                "freed": self.frees[kind],
                "failed": self.failures[kind],
                "live": self.live_count(kind),
            }
            for kind in BLOCK_KINDS
        }


# Singleton instance
_instance: Optional[TrackingAllocator] = None


def get_allocator() -> TrackingAllocator:
    """Get the process-wide default allocator."""
    global _instance
    if _instance is None:
        _instance = TrackingAllocator()
    return _instance


def set_allocator(allocator: Optional[TrackingAllocator]) -> None:
    """Replace the default allocator (None resets to a fresh one on next use)."""
    global _instance
    _instance = allocator
