"""
Queue Module - Black Box Interface

Purpose: Singly-linked queue of owned text payloads
Interface: create(), destroy(), insert_head(), insert_tail(), remove_head(),
           size(), reverse(), sort()
Hidden: Node links, payload ownership, merge sort

Operations never raise on bad input or allocation failure; they report it
through their return value and leave the queue unchanged.
"""

from .queue import (
    Comparator,
    Element,
    Queue,
    byte_compare,
    create,
    destroy,
    insert_head,
    insert_tail,
    merge_sort,
    read_string,
    remove_head,
    reverse,
    size,
    sort,
)

__all__ = [
    "Comparator",
    "Element",
    "Queue",
    "byte_compare",
    "create",
    "destroy",
    "insert_head",
    "insert_tail",
    "merge_sort",
    "read_string",
    "remove_head",
    "reverse",
    "size",
    "sort",
]
