import os
import random
import sys
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from conftest import assert_invariants, chain_nodes
from strqueue.modules.allocator import TrackingAllocator, get_allocator
from strqueue.modules.queue import (
    Queue,
    create,
    destroy,
    insert_head,
    insert_tail,
    read_string,
    remove_head,
    reverse,
    size,
)


def pop(q, capacity=64):
    """Remove the head and return its value, or None if removal failed."""
    buf = bytearray(capacity)
    if not remove_head(q, buf, capacity):
        return None
    return read_string(buf)


def test_create_returns_empty_queue(allocator):
    """Test a new queue is empty and its handle is tracked"""
    q = create(allocator)

    assert q is not None
    assert size(q) == 0
    assert q.head is None and q.tail is None
    assert allocator.live_count("queue") == 1


def test_create_fails_when_allocation_fails():
    """Test create returns None instead of raising when the handle cannot be allocated"""
    allocator = TrackingAllocator(fail_percent=100)

    assert create(allocator) is None
    assert allocator.live_blocks == 0


def test_create_uses_default_allocator():
    """Test queues created without an allocator use the process-wide one"""
    q = create()

    assert q.allocator is get_allocator()
    destroy(q)
    assert get_allocator().live_blocks == 0


def test_absent_queue_operations():
    """Test every operation tolerates an absent queue"""
    buf = bytearray(8)

    assert size(None) == 0
    assert insert_head(None, "x") is False
    assert insert_tail(None, "x") is False
    assert remove_head(None, buf, 8) is False
    assert buf == bytearray(8)
    reverse(None)
    destroy(None)


def test_insert_tail_is_fifo(queue):
    """Test tail insertion then head removal yields insertion order"""
    assert insert_tail(queue, "x")
    assert insert_tail(queue, "y")

    assert pop(queue) == b"x"
    assert pop(queue) == b"y"
    assert size(queue) == 0


def test_insert_head_is_lifo(queue):
    """Test head insertion then head removal yields reverse order"""
    assert insert_head(queue, "x")
    assert insert_head(queue, "y")

    assert pop(queue) == b"y"
    assert pop(queue) == b"x"


def test_first_insert_sets_head_and_tail(queue):
    """Test inserting into an empty queue makes the element both head and tail"""
    assert insert_head(queue, "only")

    assert queue.head is queue.tail
    assert queue.head.next is None
    assert_invariants(queue)


def test_insert_copies_payload(queue):
    """Test stored payloads are independent of the caller's buffer"""
    source = bytearray(b"mutable")
    assert insert_tail(queue, source)

    source[0:1] = b"M"

    assert queue.head.value == b"mutable"


def test_insert_keeps_full_length(queue):
    """Test long strings are stored without truncation"""
    long_value = "z" * 5000
    assert insert_tail(queue, long_value)

    assert queue.tail.value == long_value.encode()


def test_insert_encodes_text_as_utf8(queue):
    """Test str payloads are stored as UTF-8 bytes"""
    assert insert_tail(queue, "café")

    assert queue.head.value == "café".encode("utf-8")


@pytest.mark.parametrize("bad_value", [None, 42, ["a"]])
def test_insert_rejects_non_text(queue, allocator, bad_value):
    """Test inserting a missing or non-text value fails without allocating"""
    before = allocator.live_blocks

    assert insert_head(queue, bad_value) is False
    assert insert_tail(queue, bad_value) is False

    assert size(queue) == 0
    assert allocator.live_blocks == before


def test_insert_node_allocation_failure(queue, allocator):
    """Test a failed node allocation leaves the queue unchanged"""
    assert insert_tail(queue, "keep")
    before = allocator.live_blocks

    with patch.object(allocator, "alloc_node", return_value=None):
        assert insert_head(queue, "lost") is False
        assert insert_tail(queue, "lost") is False

    assert queue.to_list() == [b"keep"]
    assert allocator.live_blocks == before
    assert_invariants(queue)


def test_insert_payload_allocation_failure_releases_node(queue, allocator):
    """Test a failed payload copy releases the node allocated before it"""
    assert insert_tail(queue, "keep")
    before = allocator.live_blocks

    with patch.object(allocator, "alloc_payload", return_value=False):
        assert insert_tail(queue, "lost") is False

    assert allocator.live_blocks == before
    assert allocator.frees["node"] == 1
    assert queue.to_list() == [b"keep"]
    assert_invariants(queue)


def test_remove_head_truncates_to_capacity(queue):
    """Test removal copies at most capacity - 1 bytes plus a terminator"""
    assert insert_tail(queue, "hello")
    buf = bytearray(b"\xff" * 4)

    assert remove_head(queue, buf, 4)

    assert bytes(buf) == b"hel\x00"
    assert read_string(buf) == b"hel"


def test_remove_head_exact_fit(queue):
    """Test a buffer one byte longer than the value holds it whole"""
    assert insert_tail(queue, "hello")
    buf = bytearray(6)

    assert remove_head(queue, buf, 6)

    assert bytes(buf) == b"hello\x00"


def test_remove_head_capacity_one_yields_empty_string(queue):
    """Test capacity 1 only has room for the terminator"""
    assert insert_tail(queue, "hello")
    buf = bytearray(b"\xff")

    assert remove_head(queue, buf, 1)

    assert bytes(buf) == b"\x00"
    assert size(queue) == 0


@pytest.mark.parametrize(
    "buf, capacity",
    [
        (None, 8),
        (bytearray(8), 0),
        (bytearray(8), -1),
        (bytearray(2), 8),
    ],
)
def test_remove_head_rejects_unusable_buffer(queue, allocator, buf, capacity):
    """Test a missing, zero-capacity or undersized buffer fails without mutation"""
    assert insert_tail(queue, "value")
    before = allocator.live_blocks
    snapshot = None if buf is None else bytes(buf)

    assert remove_head(queue, buf, capacity) is False

    assert size(queue) == 1
    assert allocator.live_blocks == before
    if buf is not None:
        assert bytes(buf) == snapshot


def test_remove_head_from_empty_queue(queue):
    """Test removing from an empty queue fails and leaves the buffer untouched"""
    buf = bytearray(b"untouched")

    assert remove_head(queue, buf, len(buf)) is False

    assert buf == bytearray(b"untouched")
    assert_invariants(queue)


def test_remove_last_element_clears_tail(queue):
    """Test removing the only element resets head and tail"""
    assert insert_tail(queue, "a")

    assert pop(queue) == b"a"

    assert queue.head is None
    assert queue.tail is None
    assert insert_tail(queue, "b")
    assert queue.head is queue.tail


def test_remove_head_releases_node_and_payload(queue, allocator):
    """Test removal hands the node and its payload back to the allocator"""
    assert insert_tail(queue, "a")
    assert insert_tail(queue, "b")

    assert pop(queue) == b"a"

    assert allocator.live_count("node") == 1
    assert allocator.live_count("payload") == 1
    assert allocator.frees["node"] == 1
    assert allocator.frees["payload"] == 1


def test_size_tracks_successful_operations_under_failure_injection():
    """Test size equals successful inserts minus successful removals"""
    allocator = TrackingAllocator(fail_percent=30, seed=7)
    q = Queue(allocator)
    rng = random.Random(11)
    expected = 0

    for i in range(500):
        op = rng.choice(["ih", "it", "rh"])
        if op == "ih":
            expected += insert_head(q, f"v{i}")
        elif op == "it":
            expected += insert_tail(q, f"v{i}")
        else:
            expected -= pop(q) is not None
        assert size(q) == expected
        assert len(q) == expected

    assert_invariants(q)
    assert allocator.failures["node"] + allocator.failures["payload"] > 0
    assert allocator.live_count("node") == expected
    assert allocator.live_count("payload") == expected


def test_destroy_releases_everything(allocator):
    """Test destroy frees every payload, node and the handle"""
    q = create(allocator)
    for i in range(25):
        assert insert_tail(q, f"item-{i}")

    destroy(q)

    assert allocator.live_blocks == 0
    summary = allocator.summary()
    assert summary["node"]["freed"] == 25
    assert summary["payload"]["freed"] == 25
    assert summary["queue"]["freed"] == 1


def test_destroy_empty_queue(allocator):
    """Test destroying a queue with no elements"""
    q = create(allocator)

    destroy(q)

    assert allocator.live_blocks == 0


def test_destroy_directly_constructed_queue(allocator, caplog):
    """Test a queue not built by create only releases its elements"""
    q = Queue(allocator)
    assert q.insert_tail("a")

    q.destroy()

    assert allocator.live_blocks == 0
    assert "not allocated" not in caplog.text


def test_reverse_flips_order(make_queue):
    """Test reverse makes the old tail the head"""
    q = make_queue(["a", "b", "c", "d"])
    old_head, old_tail = q.head, q.tail

    reverse(q)

    assert q.to_list() == [b"d", b"c", b"b", b"a"]
    assert q.head is old_tail
    assert q.tail is old_head
    assert_invariants(q)


def test_reverse_twice_restores_order(make_queue):
    """Test reverse is its own inverse"""
    q = make_queue(["one", "two", "three"])
    nodes = chain_nodes(q)

    reverse(q)
    reverse(q)

    assert chain_nodes(q) == nodes


def test_reverse_does_not_allocate(make_queue, allocator):
    """Test reverse only relinks existing nodes"""
    q = make_queue(["a", "b", "c"])
    allocations = sum(allocator.allocations.values())
    frees = sum(allocator.frees.values())

    reverse(q)

    assert sum(allocator.allocations.values()) == allocations
    assert sum(allocator.frees.values()) == frees


@pytest.mark.parametrize("values", [[], ["solo"]])
def test_reverse_short_queue_is_noop(make_queue, values):
    """Test reversing an empty or single-element queue changes nothing"""
    q = make_queue(values)

    reverse(q)

    assert q.to_list() == [v.encode() for v in values]
    assert_invariants(q)


def test_read_string_without_terminator():
    """Test read_string returns the whole buffer when no NUL is present"""
    assert read_string(b"abc") == b"abc"
    assert read_string(bytearray(b"ab\x00cd")) == b"ab"
