"""
strqueue - Linked-list string queue with a checking command shell

A singly-linked queue of owned text payloads, plus the tooling needed to
exercise it: a tracking allocator with failure injection and an interactive
command shell that verifies every result.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- queue: Linked-list queue, reversal and stable merge sort
- allocator: Block tracking and allocation failure injection
- console: Command shell driving and checking the queue
"""

__version__ = "1.0.0"
