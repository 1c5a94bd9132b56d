#!/usr/bin/env python3
"""
Contiguous Memory Allocator Command Line Interface
Reads one command per line and dispatches it to a ContiguousMemoryAllocator.

Commands (keywords are case-insensitive):
  RQ <owner> <size> <F|B|W>   request memory using first, best or worst fit
  RL <owner>                  release every block held by owner
  C                           compact allocated blocks toward address 0
  STAT                        print one line per block
  X                           exit
"""

import argparse
import sys
import logging
from typing import List, Optional, TextIO

from pydantic import ValidationError

from memsim.memory import AllocationStrategy, ContiguousMemoryAllocator, StatusEntry


def format_status_line(entry: StatusEntry) -> str:
    """Render a status entry the way STAT prints it.

    Example:
        >>> format_status_line(StatusEntry(0, 29, 30, "A"))
        'Addresses [0:29] Process A (size 30)'
    """
    label = "Unused" if entry.is_free else f"Process {entry.owner}"
    return f"Addresses [{entry.start}:{entry.end}] {label} (size {entry.size})"


class AllocatorShell:
    """Line-oriented front-end around a single allocator."""

    PROMPT = "allocator> "

    def __init__(
        self, allocator: ContiguousMemoryAllocator, out: Optional[TextIO] = None
    ):
        self.allocator = allocator
        self.out = out if out is not None else sys.stdout
        self.logger = logging.getLogger(__name__)

    def write(self, message: str):
        print(message, file=self.out)

    def handle_line(self, line: str) -> bool:
        """Execute one command line.

        Returns:
            bool: False once the exit command has been read, True otherwise.
        """
        tokens = line.split()
        if not tokens:
            return True

        command, args = tokens[0].upper(), tokens[1:]
        self.logger.debug(f"Command {command} with arguments {args}")
        if command == "X":
            return False
        elif command == "RQ":
            self.cmd_request(args)
        elif command == "RL":
            self.cmd_release(args)
        elif command == "C" and not args:
            self.cmd_compact()
        elif command == "STAT" and not args:
            self.cmd_status()
        else:
            self.write("Unknown command")
        return True

    def cmd_request(self, args: List[str]):
        if len(args) != 3:
            self.write("Usage: RQ <owner> <size> <F|B|W>")
            return
        owner, raw_size, code = args
        try:
            size = int(raw_size)
        except ValueError:
            self.write(f"Error: Invalid size {raw_size}")
            return
        try:
            strategy = AllocationStrategy.from_code(code)
        except ValueError:
            self.write("Invalid allocation strategy")
            return

        try:
            result = self.allocator.allocate(owner, size, strategy)
        except ValueError as e:
            self.write(f"Error: {e}")
            return
        if result:
            self.write(f"Successfully allocated {size} bytes to {owner}")
        else:
            self.write(f"Error: Cannot allocate {size} bytes to {owner}")

    def cmd_release(self, args: List[str]):
        if len(args) != 1:
            self.write("Usage: RL <owner>")
            return
        owner = args[0]
        if self.allocator.release(owner):
            self.write(f"Successfully released memory for {owner}")
        else:
            self.write(f"Error: Process {owner} not found")

    def cmd_compact(self):
        self.allocator.compact()
        self.write("Memory compacted")

    def cmd_status(self):
        for entry in self.allocator.status():
            self.write(format_status_line(entry))

    def run(self, stream: Optional[TextIO] = None, interactive: bool = False):
        """Process commands from ``stream`` until X or end of input."""
        stream = stream if stream is not None else sys.stdin
        while True:
            if interactive:
                self.out.write(self.PROMPT)
                self.out.flush()
            line = stream.readline()
            if not line:
                break
            if not self.handle_line(line):
                break


def setup_logging(level: str = "WARNING"):
    """Setup logging configuration."""
    log_level = getattr(logging, level.upper(), logging.WARNING)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def read_capacity(stream: Optional[TextIO] = None, out: Optional[TextIO] = None) -> int:
    """Prompt for the total memory size."""
    stream = stream if stream is not None else sys.stdin
    out = out if out is not None else sys.stdout
    out.write("Enter total memory size: ")
    out.flush()
    line = stream.readline()
    return int(line.strip())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memsim",
        description="Contiguous memory allocation simulator (first, best and worst fit)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  memsim 1048576
  memsim 100 --script commands.txt
  echo "RQ P0 40 F" | memsim 100
            """,
    )
    parser.add_argument(
        "size", nargs="?", type=int, help="Total memory size (prompted if omitted)"
    )
    parser.add_argument("--script", help="Read commands from a file instead of stdin")
    parser.add_argument(
        "--allow-duplicate-owners",
        action="store_true",
        help="Let an owner hold more than one block at a time",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Check partition invariants after every operation",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        capacity = args.size if args.size is not None else read_capacity()
        allocator = ContiguousMemoryAllocator(
            capacity,
            allow_duplicate_owners=args.allow_duplicate_owners,
            validate_invariants=args.validate,
        )
    except (ValueError, ValidationError) as e:
        print(f"Error: Invalid memory size: {e}", file=sys.stderr)
        return 1

    shell = AllocatorShell(allocator)
    try:
        if args.script:
            with open(args.script, "r", encoding="utf-8") as f:
                shell.run(f)
        else:
            shell.run(sys.stdin, interactive=sys.stdin.isatty())
    except KeyboardInterrupt:
        print()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
