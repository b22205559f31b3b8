"""
Command shell for strqueue.

Drives a single queue from interactive input or scripts and checks every
result against an independent model (expected size, sortedness, removed
values, leaked blocks). Problems are reported as warnings or errors; the
error count decides the exit status.
"""

import logging
import os
import time
from dataclasses import dataclass, replace
from functools import cmp_to_key
from typing import Callable, Dict, List, Optional, Set, TextIO

from rich.console import Console
from rich.table import Table
from rich.text import Text

from strqueue.config.provider import ShellConfig
from strqueue.modules.allocator import TrackingAllocator
from strqueue.modules.queue import (
    Element,
    Queue,
    create,
    destroy,
    insert_head,
    insert_tail,
    read_string,
    remove_head,
    reverse,
    size,
    sort,
)

logger = logging.getLogger("strqueue.console")


@dataclass
class Command:
    """A shell command."""
    name: str
    handler: Callable[[List[str]], None]
    usage: str
    help: str


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


class QueueConsole:
    def __init__(
        self,
        config: ShellConfig,
        allocator: Optional[TrackingAllocator] = None,
        console: Optional[Console] = None,
    ):
        """
        Initialize command shell.

        Args:
            config: Shell configuration (copied; option changes stay local)
            allocator: Allocator for queues built by the shell
            console: Rich console for output
        """
        self.config = replace(config)
        self.allocator = allocator or TrackingAllocator(config.fail_percent, config.seed)
        self.console = console or Console()

        self.queue: Optional[Queue] = None
        self.expected_size = 0
        self.error_count = 0
        self.stopped = False
        self._active_scripts: Set[str] = set()

        self.commands: Dict[str, Command] = {}
        self._register("new", self._do_new, "new", "Create new queue")
        self._register("free", self._do_free, "free", "Delete queue")
        self._register("ih", self._do_insert_head, "ih str [n]", "Insert string str at head of queue n times")
        self._register("it", self._do_insert_tail, "it str [n]", "Insert string str at tail of queue n times")
        self._register("rh", self._do_remove_head, "rh [str]", "Remove from head of queue, optionally compare to expected value str")
        self._register("rhq", self._do_remove_head_quiet, "rhq", "Remove from head of queue without reporting value")
        self._register("reverse", self._do_reverse, "reverse", "Reverse queue")
        self._register("sort", self._do_sort, "sort", "Sort queue in ascending order")
        self._register("size", self._do_size, "size [n]", "Compute queue size n times")
        self._register("show", self._do_show, "show", "Show queue contents")
        self._register("option", self._do_option, "option [name value]", "Display or set options")
        self._register("source", self._do_source, "source file", "Read commands from source file")
        self._register("time", self._do_time, "time cmd arg ...", "Time command execution")
        self._register("help", self._do_help, "help", "Show documentation")
        self._register("quit", self._do_quit, "quit", "Exit program")

    def _register(self, name: str, handler: Callable[[List[str]], None], usage: str, help_text: str) -> None:
        self.commands[name] = Command(name, handler, usage, help_text)

    # ---- output ----

    def _out(self, message: str) -> None:
        self.console.print(Text(message), soft_wrap=True)

    def _warn(self, message: str) -> None:
        self.console.print(Text(f"WARNING: {message}", style="yellow"), soft_wrap=True)

    def _error(self, message: str) -> None:
        self.error_count += 1
        logger.warning(message)
        self.console.print(Text(f"ERROR: {message}", style="bold red"), soft_wrap=True)

    def _usage(self, name: str) -> None:
        self._error(f"Usage: {self.commands[name].usage}")

    def _allocation_failed(self, message: str) -> None:
        """Allocation failures are expected while injection is on."""
        if self.allocator.fail_percent:
            self._warn(f"{message} (allocation failure injected)")
        else:
            self._error(message)

    # ---- driving ----

    def run_command(self, line: str) -> bool:
        """
        Run one command line.

        Returns:
            False once the shell has stopped (quit or error limit exceeded)
        """
        if self.stopped:
            return False

        args = line.split()
        if not args or args[0].startswith("#"):
            return True

        if self.config.echo:
            self._out(f"cmd> {' '.join(args)}")
        logger.debug(f"Running command: {args}")

        command = self.commands.get(args[0])
        if command is None:
            self._error(f"Unknown command '{args[0]}'")
        else:
            command.handler(args[1:])

        if self.error_count > self.config.error_limit and not self.stopped:
            self._out("Error limit exceeded.  Stopping command execution")
            self.stopped = True
        return not self.stopped

    def run_script(self, path: str) -> bool:
        """
        Run every command in a file.

        Returns:
            False if the file could not be read or is already being run
        """
        key = os.path.realpath(path)
        if key in self._active_scripts:
            self._error(f"source: recursive include of '{path}'")
            return False

        self._active_scripts.add(key)
        try:
            with open(path, encoding="utf-8") as f:
                for line in f:
                    if not self.run_command(line):
                        break
        except OSError as e:
            self._error(f"Could not read source file '{path}': {e.strerror}")
            return False
        except UnicodeDecodeError as e:
            self._error(f"Source file '{path}' is not valid UTF-8: {e.reason} at byte {e.start}")
            return False
        finally:
            self._active_scripts.discard(key)
        return True

    def interact(self, stream: TextIO, prompt: Optional[str] = None) -> None:
        """Read and run commands from stream until EOF or quit."""
        while not self.stopped:
            if prompt:
                self.console.print(Text(prompt), end="")
            line = stream.readline()
            if not line:
                break
            if not self.run_command(line):
                break

    def finish(self) -> bool:
        """
        Free any remaining queue.

        Returns:
            True if no errors were reported during the session
        """
        if self.queue is not None:
            self._free_queue()
        return self.error_count == 0

    # ---- checks ----

    def _nodes(self) -> Optional[List[Element]]:
        """Walk the chain, stopping one element past the expected size."""
        nodes: List[Element] = []
        node = self.queue.head
        while node is not None:
            if len(nodes) > self.expected_size:
                self._error(f"Queue has more than {self.expected_size} elements")
                return None
            nodes.append(node)
            node = node.next
        return nodes

    def _check_chain(self, nodes: Optional[List[Element]] = None) -> bool:
        if nodes is None:
            nodes = self._nodes()
            if nodes is None:
                return False

        ok = True
        if size(self.queue) != self.expected_size:
            self._error(f"Queue size = {size(self.queue)}, expected {self.expected_size}")
            ok = False
        if len(nodes) != self.expected_size:
            self._error(f"Queue chain has {len(nodes)} elements, expected {self.expected_size}")
            ok = False
        last = nodes[-1] if nodes else None
        if self.queue.tail is not last:
            self._error("Tail does not reference the last element")
            ok = False
        return ok

    def _show(self) -> None:
        if self.queue is None:
            self._out("q = NULL")
            return

        nodes = self._nodes()
        if nodes is None:
            return

        limit = self.config.show_limit
        shown = [_decode(node.value) for node in nodes[:limit]]
        if len(nodes) > limit:
            shown.append("...")
        self._out(f"q = [{' '.join(shown)}]")
        self._check_chain(nodes)

    def _after_mutation(self) -> None:
        if self.config.verbose >= 1:
            self._show()
        elif self.queue is not None:
            self._check_chain()

    def _parse_count(self, args: List[str], index: int, name: str) -> Optional[int]:
        if len(args) <= index:
            return 1
        try:
            count = int(args[index])
        except ValueError:
            count = -1
        if count < 0:
            self._error(f"Invalid count '{args[index]}' for {name}")
            return None
        return count

    def _free_queue(self) -> None:
        destroy(self.queue)
        self.queue = None
        self.expected_size = 0
        if self.allocator.live_blocks:
            self._error(f"Freed queue, but {self.allocator.live_blocks} blocks are still allocated")

    # ---- commands ----

    def _do_new(self, args: List[str]) -> None:
        if args:
            return self._usage("new")

        if self.queue is not None:
            self._free_queue()
        self.queue = create(self.allocator)
        self.expected_size = 0
        if self.queue is None:
            self._allocation_failed("Queue allocation failed")
        self._after_mutation()

    def _do_free(self, args: List[str]) -> None:
        if args:
            return self._usage("free")

        if self.queue is None:
            self._warn("Calling free on null queue")
        else:
            self._free_queue()
        self._after_mutation()

    def _insert(self, args: List[str], name: str, at_head: bool) -> None:
        if not 1 <= len(args) <= 2:
            return self._usage(name)
        count = self._parse_count(args, 1, name)
        if count is None:
            return

        label = "insert head" if at_head else "insert tail"
        insert = insert_head if at_head else insert_tail
        value = args[0]

        if self.queue is None:
            if insert(None, value):
                self._error(f"{label} returned true on null queue")
            else:
                self._warn(f"Calling {label} on null queue")
            return

        expected = value.encode("utf-8")
        for _ in range(count):
            if not insert(self.queue, value):
                self._allocation_failed(f"Insertion of {value} failed")
                break
            self.expected_size += 1
            placed = self.queue.head if at_head else self.queue.tail
            if placed is None or placed.value != expected:
                self._error(f"{label} did not place {value} at the {'head' if at_head else 'tail'}")
                break
        self._after_mutation()

    def _do_insert_head(self, args: List[str]) -> None:
        self._insert(args, "ih", at_head=True)

    def _do_insert_tail(self, args: List[str]) -> None:
        self._insert(args, "it", at_head=False)

    def _remove(self, expected: Optional[str], quiet: bool) -> None:
        capacity = self.config.string_length + 1
        buf = bytearray(capacity)
        had_elements = size(self.queue) > 0

        ok = remove_head(self.queue, buf, capacity)

        if self.queue is None:
            if ok:
                self._error("remove head returned true on null queue")
            else:
                self._warn("Calling remove head on null queue")
            return
        if not had_elements:
            if ok:
                self._error("Removal from empty queue reported success")
            else:
                self._warn("Calling remove head on empty queue")
            return
        if not ok:
            self._error("Removal from non-empty queue failed")
            return

        self.expected_size -= 1
        removed = read_string(buf)
        if expected is not None:
            wanted = expected.encode("utf-8")[: self.config.string_length]
            if removed != wanted:
                self._error(f"Removed value {_decode(removed)} != expected value {_decode(wanted)}")
        if not quiet:
            self._out(f"Removed {_decode(removed)} from queue")
        self._after_mutation()

    def _do_remove_head(self, args: List[str]) -> None:
        if len(args) > 1:
            return self._usage("rh")
        self._remove(args[0] if args else None, quiet=False)

    def _do_remove_head_quiet(self, args: List[str]) -> None:
        if args:
            return self._usage("rhq")
        self._remove(None, quiet=True)

    def _do_reverse(self, args: List[str]) -> None:
        if args:
            return self._usage("reverse")
        if self.queue is None:
            reverse(None)
            self._warn("Calling reverse on null queue")
            return

        before = self._nodes()
        if before is None:
            return
        reverse(self.queue)
        after = self._nodes()
        if after is None:
            return
        if after != before[::-1]:
            self._error("Reverse did not invert element order")
        self._after_mutation()

    def _do_sort(self, args: List[str]) -> None:
        if args:
            return self._usage("sort")
        if self.queue is None:
            sort(None)
            self._warn("Calling sort on null queue")
            return

        before = self._nodes()
        if before is None:
            return
        sort(self.queue)
        after = self._nodes()
        if after is None:
            return

        compare = self.queue.compare
        if any(compare(a.value, b.value) > 0 for a, b in zip(after, after[1:])):
            self._error("Not sorted in ascending order")
        elif after != sorted(before, key=cmp_to_key(lambda a, b: compare(a.value, b.value))):
            self._error("Sort did not keep equal elements in their original order")
        self._after_mutation()

    def _do_size(self, args: List[str]) -> None:
        if len(args) > 1:
            return self._usage("size")
        count = self._parse_count(args, 0, "size")
        if count is None:
            return

        if self.queue is None:
            self._warn("Calling size on null queue")

        computed = 0
        for _ in range(count):
            computed = size(self.queue)
        if computed != self.expected_size:
            self._error(f"Computed queue size as {computed}, but correct value is {self.expected_size}")
        else:
            self._out(f"Queue size = {computed}")

    def _do_show(self, args: List[str]) -> None:
        if args:
            return self._usage("show")
        self._show()

    def _do_option(self, args: List[str]) -> None:
        if not args:
            table = Table(title="Options")
            table.add_column("Name")
            table.add_column("Value")
            table.add_column("Description")
            for name, value, description in self.config.describe_options():
                table.add_row(Text(name), Text(str(value)), Text(description))
            self.console.print(table)
            return
        if len(args) != 2:
            return self._usage("option")

        name, raw = args
        try:
            self.config = self.config.with_option(name, raw)
        except ValueError as e:
            return self._error(str(e))

        if name == "malloc":
            self.allocator.fail_percent = self.config.fail_percent

    def _do_source(self, args: List[str]) -> None:
        if len(args) != 1:
            return self._usage("source")
        self.run_script(args[0])

    def _do_time(self, args: List[str]) -> None:
        if not args:
            return self._usage("time")
        start = time.perf_counter()
        self.run_command(" ".join(args))
        self._out(f"Delta time = {time.perf_counter() - start:.3f}")

    def _do_help(self, args: List[str]) -> None:
        table = Table(title="Commands")
        table.add_column("Command")
        table.add_column("Description")
        for command in self.commands.values():
            table.add_row(Text(command.usage), Text(command.help))
        self.console.print(table)

    def _do_quit(self, args: List[str]) -> None:
        if self.queue is not None:
            self._free_queue()
        self.stopped = True
