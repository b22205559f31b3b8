"""
Shared pytest fixtures for strqueue tests.

This module provides common fixtures including:
- TrackingAllocator instances with and without failure injection
- Queue factories that build and track queues for teardown checks
- A recording rich console and a QueueConsole wired to it
"""

import io
import os
import sys
from typing import Callable, Iterable, List, Optional

import pytest
from rich.console import Console

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from strqueue.config.provider import ShellConfig
from strqueue.modules.allocator import TrackingAllocator, set_allocator
from strqueue.modules.console import QueueConsole
from strqueue.modules.queue import Element, Queue, create


# =============================================================================
# Allocator and Queue Fixtures
# =============================================================================

@pytest.fixture
def allocator():
    """Allocator with failure injection disabled."""
    return TrackingAllocator()


@pytest.fixture(autouse=True)
def reset_default_allocator():
    """Keep the process-wide default allocator isolated between tests."""
    set_allocator(None)
    yield
    set_allocator(None)


@pytest.fixture
def queue(allocator):
    """Empty queue whose handle is owned by the allocator fixture."""
    q = create(allocator)
    assert q is not None
    return q


@pytest.fixture
def make_queue(allocator) -> Callable[[Iterable[str]], Queue]:
    """
    Factory building a queue from values inserted at the tail.

    Usage:
        def test_something(make_queue):
            q = make_queue(["b", "a"])
    """
    def _make(values: Iterable[str]) -> Queue:
        q = create(allocator)
        for value in values:
            assert q.insert_tail(value)
        return q

    return _make


def chain_nodes(q: Queue) -> List[Element]:
    """Walk the chain from head, failing on cycles longer than the queue."""
    nodes = []
    node = q.head
    while node is not None:
        assert len(nodes) <= q.size, "chain is longer than size (cycle?)"
        nodes.append(node)
        node = node.next
    return nodes


def assert_invariants(q: Queue) -> None:
    """Check the head/tail/size invariants of a queue."""
    nodes = chain_nodes(q)
    assert len(nodes) == q.size
    if q.size == 0:
        assert q.head is None and q.tail is None
    else:
        assert q.head is nodes[0]
        assert q.tail is nodes[-1]
        assert q.tail.next is None


# =============================================================================
# Console Fixtures
# =============================================================================

def recording_console() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None, force_terminal=False)


def output_of(console: Console) -> str:
    return console.file.getvalue()


@pytest.fixture
def shell_factory(allocator):
    """
    Factory building a QueueConsole that prints to an in-memory console.

    Usage:
        def test_something(shell_factory):
            shell = shell_factory(verbose=0)
            shell.run_command("new")
    """
    def _make(allocator_override: Optional[TrackingAllocator] = None, **overrides) -> QueueConsole:
        config = ShellConfig(**overrides)
        return QueueConsole(
            config,
            allocator=allocator_override or allocator,
            console=recording_console(),
        )

    return _make


@pytest.fixture
def shell(shell_factory):
    """QueueConsole with default options."""
    return shell_factory()


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: Tests that take a long time to run"
    )
