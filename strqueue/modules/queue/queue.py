"""
Singly-linked queue of owned text payloads.

Every node and payload is obtained from a TrackingAllocator and handed back
to it on removal or teardown. Reversal and sorting only relink existing nodes.
"""

import logging
from typing import Callable, Iterator, List, Optional, Union

from strqueue.modules.allocator import TrackingAllocator, get_allocator

logger = logging.getLogger("strqueue.queue")

Payload = Union[str, bytes, bytearray, memoryview]
Comparator = Callable[[bytes, bytes], int]


def byte_compare(a: bytes, b: bytes) -> int:
    """Three-way byte-lexicographic comparison (a proper prefix sorts first)."""
    return (a > b) - (a < b)


def read_string(buf: Union[bytes, bytearray]) -> bytes:
    """Return the bytes of a NUL-terminated buffer up to the terminator."""
    end = buf.find(0)
    return bytes(buf if end < 0 else buf[:end])


def _to_bytes(s: Optional[Payload]) -> Optional[bytes]:
    if isinstance(s, str):
        return s.encode("utf-8")
    if isinstance(s, (bytes, bytearray, memoryview)):
        return bytes(s)
    return None


class Element:
    __slots__ = ("value", "next")

    def __init__(self):
        self.value: Optional[bytes] = None
        self.next: Optional["Element"] = None

    def __repr__(self) -> str:
        return f"Element({self.value!r})"


class Queue:
    """
    Queue handle: head, tail and element count.

    Handles built by create() are owned by the allocator and released by
    destroy(). A Queue constructed directly owns only its elements.
    """

    def __init__(
        self,
        allocator: Optional[TrackingAllocator] = None,
        compare: Optional[Comparator] = None,
    ):
        self.head: Optional[Element] = None
        self.tail: Optional[Element] = None
        self.size = 0
        self.allocator = allocator if allocator is not None else get_allocator()
        self.compare = compare if compare is not None else byte_compare

    def __len__(self) -> int:
        return self.size

    def __iter__(self) -> Iterator[bytes]:
        node = self.head
        while node is not None:
            yield node.value
            node = node.next

    def __repr__(self) -> str:
        return f"Queue(size={self.size})"

    def to_list(self) -> List[bytes]:
        return list(self)

    def _new_element(self, s: Optional[Payload], op: str) -> Optional[Element]:
        data = _to_bytes(s)
        if data is None:
            logger.debug(f"{op}: invalid payload {type(s).__name__}")
            return None

        node = self.allocator.alloc_node(Element)
        if node is None:
            logger.debug(f"{op}: node allocation failed")
            return None

        if not self.allocator.alloc_payload(node, data):
            logger.debug(f"{op}: payload allocation failed, releasing node")
            self.allocator.free_node(node)
            return None

        return node

    def insert_head(self, s: Payload) -> bool:
        """
        Insert a copy of s in front of the current head.

        Returns:
            True on success; False (queue unchanged) on invalid payload or
            allocation failure
        """
        node = self._new_element(s, "insert_head")
        if node is None:
            return False

        node.next = self.head
        self.head = node
        if self.size == 0:
            self.tail = node
        self.size += 1
        return True

    def insert_tail(self, s: Payload) -> bool:
        """Append a copy of s after the current tail. Same contract as insert_head."""
        node = self._new_element(s, "insert_tail")
        if node is None:
            return False

        if self.size == 0:
            self.head = node
        else:
            self.tail.next = node
        self.tail = node
        self.size += 1
        return True

    def remove_head(self, out_buf: Optional[bytearray], buf_capacity: int) -> bool:
        """
        Remove the head element, copying its payload into out_buf.

        At most buf_capacity - 1 bytes are copied and a NUL byte always
        follows them inside the capacity.

        Args:
            out_buf: Writable buffer of at least buf_capacity bytes
            buf_capacity: Usable size of out_buf

        Returns:
            False (queue unchanged) if the queue is empty, out_buf is missing,
            buf_capacity < 1 or out_buf is shorter than buf_capacity
        """
        if self.head is None:
            return False
        if out_buf is None or buf_capacity < 1 or len(out_buf) < buf_capacity:
            logger.debug(f"remove_head: unusable buffer (capacity={buf_capacity})")
            return False

        node = self.head
        count = min(len(node.value), buf_capacity - 1)
        out_buf[:count] = node.value[:count]
        out_buf[count] = 0

        self.head = node.next
        if self.head is None:
            self.tail = None
        self.size -= 1

        self.allocator.free_payload(node)
        self.allocator.free_node(node)
        return True

    def reverse(self) -> None:
        """Flip every link in place; old tail becomes head."""
        if self.head is None:
            return

        previous = None
        node = self.head
        self.tail = self.head
        while node is not None:
            following = node.next
            node.next = previous
            previous = node
            node = following
        self.head = previous

    def sort(self) -> None:
        """Stable ascending sort by payload, relinking nodes only."""
        if self.size < 2:
            return

        self.head = merge_sort(self.head, self.compare)

        node = self.head
        while node.next is not None:
            node = node.next
        self.tail = node

    def clear(self) -> None:
        """Release every element; the queue stays usable."""
        node = self.head
        while node is not None:
            following = node.next
            self.allocator.free_payload(node)
            self.allocator.free_node(node)
            node = following
        self.head = self.tail = None
        self.size = 0

    def destroy(self) -> None:
        """Release every element, then the handle if the allocator owns it."""
        self.clear()
        if self.allocator.is_live("queue", self):
            self.allocator.free_queue(self)


def merge_sort(head: Optional[Element], compare: Comparator = byte_compare) -> Optional[Element]:
    """
    Sort a None-terminated chain and return its new head.

    Splits at the midpoint with slow/fast cursors, sorts both halves and
    merges them. Equal keys keep their order: the left run wins ties.
    """
    if head is None or head.next is None:
        return head

    slow = head
    fast = head.next
    while fast is not None and fast.next is not None:
        fast = fast.next.next
        slow = slow.next

    right = slow.next
    slow.next = None

    return _merge(merge_sort(head, compare), merge_sort(right, compare), compare)


def _merge(left: Optional[Element], right: Optional[Element], compare: Comparator) -> Optional[Element]:
    head = tail = None
    while left is not None and right is not None:
        if compare(left.value, right.value) <= 0:
            taken, left = left, left.next
        else:
            taken, right = right, right.next
        if tail is None:
            head = taken
        else:
            tail.next = taken
        tail = taken

    rest = left if left is not None else right
    if tail is None:
        return rest
    tail.next = rest
    return head


# Handle-based interface: every function accepts None for an absent queue.


def create(
    allocator: Optional[TrackingAllocator] = None,
    compare: Optional[Comparator] = None,
) -> Optional[Queue]:
    """Create an empty queue, or return None if the handle could not be allocated."""
    allocator = allocator if allocator is not None else get_allocator()
    queue = allocator.alloc_queue(lambda: Queue(allocator, compare))
    if queue is None:
        logger.debug("create: queue allocation failed")
    return queue


def destroy(q: Optional[Queue]) -> None:
    if q is None:
        return
    q.destroy()


def insert_head(q: Optional[Queue], s: Optional[Payload]) -> bool:
    if q is None:
        return False
    return q.insert_head(s)


def insert_tail(q: Optional[Queue], s: Optional[Payload]) -> bool:
    if q is None:
        return False
    return q.insert_tail(s)


def remove_head(q: Optional[Queue], out_buf: Optional[bytearray], buf_capacity: int) -> bool:
    if q is None:
        return False
    return q.remove_head(out_buf, buf_capacity)


def size(q: Optional[Queue]) -> int:
    return q.size if q is not None else 0


def reverse(q: Optional[Queue]) -> None:
    if q is not None:
        q.reverse()


def sort(q: Optional[Queue]) -> None:
    if q is not None:
        q.sort()
