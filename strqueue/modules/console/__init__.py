"""
Console Module - Black Box Interface

Purpose: Drive a queue from commands and verify every result
Interface: QueueConsole.run_command(), run_script(), interact(), finish()
Hidden: Command table, result checks, error accounting
"""

from .console import Command, QueueConsole

__all__ = ["Command", "QueueConsole"]
