from __future__ import annotations
import time
import logging
from typing import Any, Optional, Dict, List, Iterator, NamedTuple
from sortedcontainers import SortedKeyList
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class PartitionInvariantError(AssertionError):
    """Raised when the block partition is found in a state the algorithms never produce"""


@dataclass(slots=True)
class TraceInfo:
    """Represents trace information for partition operations"""

    timestamp_ns: int
    operation: str  # "create", "alloc", "split", "release", "coalesce", "compact", "reset"
    owner: Optional[str] = field(default=None)
    start: Optional[int] = field(default=None)
    end: Optional[int] = field(default=None)
    additional_info: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def capture(
        cls,
        operation: str,
        owner: Optional[str] = None,
        start: Optional[int] = None,
        end: Optional[int] = None,
        additional_info: Optional[Dict[str, Any]] = None,
    ) -> "TraceInfo":
        """Capture a trace record stamped with the current time"""
        return cls(
            timestamp_ns=time.time_ns(),
            operation=operation,
            owner=owner,
            start=start,
            end=end,
            additional_info=additional_info or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Export trace data in dictionary form"""
        return {
            "timestamp_ns": self.timestamp_ns,
            "operation": self.operation,
            "owner": self.owner,
            "start": self.start,
            "end": self.end,
            "additional_info": self.additional_info,
        }


class StatusEntry(NamedTuple):
    """One line of a status snapshot"""

    start: int
    end: int
    size: int
    owner: Optional[str]

    @property
    def is_free(self) -> bool:
        return self.owner is None


@dataclass(slots=True)
class Block:
    """A contiguous, inclusive address range ``[start, end]``.

    A block without an owner is free. The empty string is a distinct owner
    label, never a free marker.
    """

    start: int
    end: int
    owner: Optional[str] = field(default=None)

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    @property
    def is_free(self) -> bool:
        return self.owner is None

    def is_allocated(self) -> bool:
        return self.owner is not None

    def to_status(self) -> StatusEntry:
        return StatusEntry(self.start, self.end, self.size, self.owner)


def _block_start(block: Block) -> int:
    return block.start


class BlockPartition:
    """Ordered partition of ``[0, capacity)`` into free and owned blocks.

    Blocks are held in a ``SortedKeyList`` keyed by start address, so every
    iteration yields them in ascending address order. A block's ``start`` is
    its sort key and is never mutated while the block is in the list; blocks
    whose start moves are removed and re-added.
    """

    def __init__(self, capacity: int, capture_trace: bool = True):
        """
        Create a partition holding one free block spanning the whole capacity.

        Args:
                capacity (int): Total addressable size, must be positive.
                capture_trace (bool): Whether to record a TraceInfo per mutation.

        Returns:
                None
        """
        if isinstance(capacity, bool) or not isinstance(capacity, int):
            raise TypeError(f"Capacity must be an integer, got {type(capacity).__name__}")
        if capacity <= 0:
            raise ValueError(f"Capacity must be greater than 0, got {capacity}")
        self._capacity = capacity
        self.capture_trace = capture_trace
        self.traces: List[TraceInfo] = []
        self.blocks: SortedKeyList = SortedKeyList(key=_block_start)
        self.blocks.add(Block(0, capacity - 1))
        self._record("create", start=0, end=capacity - 1)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __iter__(self) -> Iterator[Block]:
        return iter(self.blocks)

    def __len__(self) -> int:
        return len(self.blocks)

    def _record(self, operation: str, **kwargs) -> None:
        if self.capture_trace:
            self.traces.append(TraceInfo.capture(operation, **kwargs))

    def free_blocks(self) -> List[Block]:
        """Free blocks in ascending address order"""
        return [block for block in self.blocks if block.is_free]

    def allocated_blocks(self) -> List[Block]:
        return [block for block in self.blocks if block.is_allocated()]

    def blocks_of(self, owner: str) -> List[Block]:
        """All blocks labelled ``owner``, in address order"""
        return [block for block in self.blocks if block.owner == owner]

    def owners(self) -> List[str]:
        """Distinct owner labels in order of their lowest block address"""
        seen = []
        for block in self.blocks:
            if block.owner is not None and block.owner not in seen:
                seen.append(block.owner)
        return seen

    def split(self, hole: Block, size: int, owner: str) -> Block:
        """Carve an owned block of ``size`` from the low end of a free hole.

        Args:
                hole (Block): A free block currently in the partition.
                size (int): Size of the new owned block.
                owner (str): Label of the new owned block.

        Returns:
                Block: The newly owned block, starting at ``hole.start``.
        """
        if hole.is_allocated():
            raise MemoryError(
                f"Cannot split an allocated block [{hole.start}:{hole.end}] owned by {hole.owner}"
            )
        if size <= 0 or size > hole.size:
            raise ValueError(
                f"Cannot split a block of size {hole.size} into a block of size {size}"
            )

        self.blocks.remove(hole)
        allocated = Block(hole.start, hole.start + size - 1, owner)
        self.blocks.add(allocated)
        if size < hole.size:
            remainder = Block(allocated.end + 1, hole.end)
            self.blocks.add(remainder)
            logger.debug(
                "Split [%d:%d] into [%d:%d] for %s and free [%d:%d]",
                hole.start,
                hole.end,
                allocated.start,
                allocated.end,
                owner,
                remainder.start,
                remainder.end,
            )
            self._record(
                "split",
                owner=owner,
                start=hole.start,
                end=hole.end,
                additional_info={"allocated_size": size, "remaining_size": remainder.size},
            )
        self._record("alloc", owner=owner, start=allocated.start, end=allocated.end)
        return allocated

    def free_owner(self, owner: str) -> List[Block]:
        """Clear the label of every block held by ``owner``.

        Coalescing is left to the caller.
        """
        freed = []
        for block in self.blocks:
            if block.owner == owner:
                block.owner = None
                freed.append(block)
                self._record("release", owner=owner, start=block.start, end=block.end)
        return freed

    def coalesce(self) -> int:
        """Merge every run of adjacent free blocks into a single block.

        Returns:
                int: Number of pairwise merges performed.
        """
        merges = 0
        i = 0
        # the merged block keeps its start, so only `end` changes in place
        while i < len(self.blocks) - 1:
            current = self.blocks[i]
            following = self.blocks[i + 1]
            if current.is_free and following.is_free:
                logger.debug(
                    "Coalescing [%d:%d] with [%d:%d]",
                    current.start,
                    current.end,
                    following.start,
                    following.end,
                )
                del self.blocks[i + 1]
                current.end = following.end
                merges += 1
                self._record(
                    "coalesce",
                    start=current.start,
                    end=current.end,
                    additional_info={"absorbed": [following.start, following.end]},
                )
            else:
                i += 1
        return merges

    def compact(self) -> Dict[str, int]:
        """Pack owned blocks toward address 0 in their current relative order.

        A new block list is built and swapped in as a whole; at most one free
        block remains, covering the tail.
        """
        relocated = []
        next_free = 0
        moved_blocks = 0
        moved_size = 0
        for block in self.blocks:
            if block.is_free:
                continue
            if block.start != next_free:
                logger.debug(
                    "Relocating %s from [%d:%d] to [%d:%d]",
                    block.owner,
                    block.start,
                    block.end,
                    next_free,
                    next_free + block.size - 1,
                )
                moved_blocks += 1
                moved_size += block.size
            relocated.append(Block(next_free, next_free + block.size - 1, block.owner))
            next_free += block.size

        if next_free < self._capacity:
            relocated.append(Block(next_free, self._capacity - 1))

        self.blocks = SortedKeyList(relocated, key=_block_start)
        self._record(
            "compact",
            start=0,
            end=self._capacity - 1,
            additional_info={"moved_blocks": moved_blocks, "moved_size": moved_size},
        )
        return {
            "moved_blocks": moved_blocks,
            "moved_size": moved_size,
            "free_size": self._capacity - next_free,
        }

    def reset(self) -> None:
        self.blocks = SortedKeyList([Block(0, self._capacity - 1)], key=_block_start)
        self._record("reset", start=0, end=self._capacity - 1)

    def status(self) -> List[StatusEntry]:
        return [block.to_status() for block in self.blocks]

    def check_invariants(self) -> None:
        """Verify coverage, ordering and the no-adjacent-free rule.

        Raises:
                PartitionInvariantError: If any invariant does not hold.
        """
        if len(self.blocks) == 0:
            raise PartitionInvariantError("Partition holds no blocks")

        expected_start = 0
        previous: Optional[Block] = None
        for block in self.blocks:
            if block.size <= 0:
                raise PartitionInvariantError(
                    f"Block [{block.start}:{block.end}] has non-positive size"
                )
            if block.start != expected_start:
                kind = "gap" if block.start > expected_start else "overlap"
                raise PartitionInvariantError(
                    f"{kind} at address {expected_start}: next block starts at {block.start}"
                )
            if previous is not None and previous.is_free and block.is_free:
                raise PartitionInvariantError(
                    f"Adjacent free blocks [{previous.start}:{previous.end}] and [{block.start}:{block.end}]"
                )
            expected_start = block.end + 1
            previous = block

        if expected_start != self._capacity:
            raise PartitionInvariantError(
                f"Partition ends at {expected_start - 1}, expected {self._capacity - 1}"
            )

    def get_memory_summary(self) -> Dict[str, Any]:
        """Get overall memory summary of the partition"""
        free = self.free_blocks()
        allocated = self.allocated_blocks()
        allocated_bytes = sum(block.size for block in allocated)
        free_bytes = self._capacity - allocated_bytes
        largest_free = max((block.size for block in free), default=0)

        return {
            "capacity": self._capacity,
            "total_blocks": len(self.blocks),
            "allocated_blocks": len(allocated),
            "free_blocks": len(free),
            "total_allocated_bytes": allocated_bytes,
            "total_free_bytes": free_bytes,
            "largest_free_block": largest_free,
            "utilization_ratio": allocated_bytes / self._capacity,
            "external_fragmentation": (
                1.0 - largest_free / free_bytes if free_bytes > 0 else 0.0
            ),
        }

    def get_traces(self, operation: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get traces in chronological order, optionally filtered by operation"""
        return [
            trace.to_dict()
            for trace in self.traces
            if operation is None or trace.operation == operation
        ]

    def trim_traces(self, max_entries: Optional[int]) -> None:
        if max_entries is not None and len(self.traces) > max_entries:
            del self.traces[: len(self.traces) - max_entries]
