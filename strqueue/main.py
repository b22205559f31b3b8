#!/usr/bin/env python3
"""
strqueue - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes the allocator and command shell
3. Runs commands from a file or standard input

All queue logic is in the modules, following black box principles.
"""

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from rich.console import Console

from strqueue import __version__
from strqueue.config.provider import ConfigProvider, EnvConfigProvider
from strqueue.logging_config import configure_logging
from strqueue.modules.allocator import TrackingAllocator, set_allocator
from strqueue.modules.console import QueueConsole

logger = logging.getLogger("strqueue.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="strqueue",
        description="Command shell for the linked-list string queue"
    )
    parser.add_argument("-f", "--file", help="Read commands from file instead of standard input")
    parser.add_argument("-v", "--verbose", type=int, help="Verbosity level (0 hides the queue after commands)")
    parser.add_argument("-l", "--log-file", help="Write a full debug log to this file")
    parser.add_argument("--malloc", type=int, help="Allocation failure probability (percent)")
    parser.add_argument("--seed", type=int, help="Seed for allocation failure injection")
    parser.add_argument("--echo", action="store_true", help="Echo each command before running it")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None, provider: Optional[ConfigProvider] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    provider = provider or EnvConfigProvider()
    try:
        config = provider.get_shell_config()
        overrides = {
            "verbose": args.verbose,
            "fail_percent": args.malloc,
            "seed": args.seed,
            "log_file": args.log_file,
        }
        config = replace(config, **{k: v for k, v in overrides.items() if v is not None})
        if args.echo:
            config = replace(config, echo=True)
    except ValueError as e:
        parser.error(str(e))

    configure_logging(config.log_level, config.log_file)

    allocator = TrackingAllocator(config.fail_percent, config.seed)
    set_allocator(allocator)

    console = Console()
    shell = QueueConsole(config, allocator=allocator, console=console)

    if args.file:
        shell.run_script(args.file)
    else:
        prompt = "cmd> " if sys.stdin.isatty() else None
        shell.interact(sys.stdin, prompt=prompt)

    ok = shell.finish()
    logger.info(f"Session finished with {shell.error_count} errors")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
