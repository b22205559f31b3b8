"""
Allocator Module - Black Box Interface

Purpose: Account for every queue, node and payload allocation
Interface: alloc_queue(), alloc_node(), alloc_payload(), free_*(), get_allocator()
Hidden: Block bookkeeping, failure injection

Can be replaced with any allocator that honours the same None-on-failure contract.
"""

from .allocator import BLOCK_KINDS, TrackingAllocator, get_allocator, set_allocator

__all__ = ["BLOCK_KINDS", "TrackingAllocator", "get_allocator", "set_allocator"]
