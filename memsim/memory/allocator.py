import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List, Tuple, Union
from enum import Enum
from dataclasses import dataclass, field

from memsim.memory.blocks import Block, BlockPartition, StatusEntry
from memsim.memory.conf import AllocatorConfig


class AllocationStrategy(Enum):
    """Enumeration of placement strategies, valued by their command letter"""

    FIRST_FIT = "F"
    BEST_FIT = "B"
    WORST_FIT = "W"

    @property
    def algorithm(self) -> str:
        return self.name.lower()

    @classmethod
    def from_code(cls, code: Union[str, "AllocationStrategy"]) -> "AllocationStrategy":
        """
        Resolve a strategy from its letter (``F``, ``B``, ``W``).

        Args:
            code (Union[str, AllocationStrategy]): Letter, case-insensitive.

        Returns:
            AllocationStrategy: The matching strategy.

        Raises:
            ValueError: If the code names no strategy.

        Example:
            >>> AllocationStrategy.from_code("b")
            <AllocationStrategy.BEST_FIT: 'B'>
        """
        if isinstance(code, cls):
            return code
        if isinstance(code, str):
            key = code.strip().upper()
            for member in cls:
                if key == member.value:
                    return member
        raise ValueError(f"Invalid allocation strategy: {code!r}")


@dataclass
class AllocationRequest:
    """Represents a memory allocation request"""

    owner: str
    size: int
    strategy: AllocationStrategy = AllocationStrategy.FIRST_FIT


@dataclass
class AllocationResult:
    """Represents the result of an allocation attempt"""

    success: bool
    owner: Optional[str] = None
    address: Optional[int] = None
    size: Optional[int] = None
    strategy: Optional[AllocationStrategy] = None
    error_message: Optional[str] = None
    strategy_info: Dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success

    @property
    def end_address(self) -> Optional[int]:
        if self.address is None or self.size is None:
            return None
        return self.address + self.size - 1


@dataclass
class ReleaseResult:
    """Represents the result of a release attempt"""

    success: bool
    owner: Optional[str] = None
    freed_blocks: int = 0
    freed_size: int = 0
    coalesced: bool = False
    error_message: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success


@dataclass
class CompactionResult:
    """Represents the outcome of a compaction pass"""

    moved_blocks: int
    moved_size: int
    free_size: int


class PlacementAllocator(ABC):
    """Abstract base class for hole-selection algorithms"""

    strategy: AllocationStrategy

    def __init__(self, name: str):
        self.name = name
        self.allocation_count = 0
        self.failure_count = 0
        self.total_allocated = 0

    @abstractmethod
    def select(self, partition: BlockPartition, size: int) -> Tuple[Optional[Block], int]:
        """Pick the free block to carve ``size`` from.

        Returns the chosen block (or None) and the number of blocks examined.
        """
        pass

    def can_allocate(self, partition: BlockPartition, size: int) -> bool:
        """Check if allocation is possible without actually allocating"""
        for block in partition:
            if block.is_free and block.size >= size:
                return True
        return False

    def allocate(self, partition: BlockPartition, request: AllocationRequest) -> AllocationResult:
        hole, search_steps = self.select(partition, request.size)
        if hole is None:
            self.failure_count += 1
            return AllocationResult(
                success=False,
                owner=request.owner,
                size=request.size,
                strategy=self.strategy,
                error_message=f"No suitable block found for size {request.size}",
                strategy_info={
                    "algorithm": self.strategy.algorithm,
                    "search_steps": search_steps,
                },
            )

        hole_size = hole.size
        allocated = partition.split(hole, request.size, request.owner)

        self.allocation_count += 1
        self.total_allocated += request.size
        return AllocationResult(
            success=True,
            owner=request.owner,
            address=allocated.start,
            size=allocated.size,
            strategy=self.strategy,
            strategy_info={
                "algorithm": self.strategy.algorithm,
                "search_steps": search_steps,
                "hole_size": hole_size,
                "remaining_in_block": hole_size - request.size,
            },
        )

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "allocation_count": self.allocation_count,
            "failure_count": self.failure_count,
            "total_allocated": self.total_allocated,
        }

    def reset_statistics(self) -> None:
        self.allocation_count = 0
        self.failure_count = 0
        self.total_allocated = 0


class FirstFitAllocator(PlacementAllocator):
    """First-fit allocation algorithm"""

    strategy = AllocationStrategy.FIRST_FIT

    def __init__(self):
        super().__init__("First Fit")

    def select(self, partition: BlockPartition, size: int) -> Tuple[Optional[Block], int]:
        search_steps = 0
        for block in partition:
            search_steps += 1
            if block.is_free and block.size >= size:
                return block, search_steps
        return None, search_steps


class BestFitAllocator(PlacementAllocator):
    """Best-fit allocation algorithm"""

    strategy = AllocationStrategy.BEST_FIT

    def __init__(self):
        super().__init__("Best Fit")

    def select(self, partition: BlockPartition, size: int) -> Tuple[Optional[Block], int]:
        best_block = None
        search_steps = 0

        # strict "<" keeps the lowest address among equally small holes
        for block in partition:
            search_steps += 1
            if (
                block.is_free
                and block.size >= size
                and (best_block is None or block.size < best_block.size)
            ):
                best_block = block
        return best_block, search_steps


class WorstFitAllocator(PlacementAllocator):
    """Worst-fit allocation algorithm"""

    strategy = AllocationStrategy.WORST_FIT

    def __init__(self):
        super().__init__("Worst Fit")

    def select(self, partition: BlockPartition, size: int) -> Tuple[Optional[Block], int]:
        worst_block = None
        search_steps = 0

        # strict ">" keeps the lowest address among equally large holes
        for block in partition:
            search_steps += 1
            if (
                block.is_free
                and block.size >= size
                and (worst_block is None or block.size > worst_block.size)
            ):
                worst_block = block
        return worst_block, search_steps


class ContiguousMemoryAllocator:
    """Simulates contiguous allocation over a fixed address space ``[0, capacity)``.

    The allocator is single-owner: it performs no locking, and callers sharing
    it across threads must serialize every call themselves.
    """

    def __init__(
        self,
        capacity: int,
        allow_duplicate_owners: bool = False,
        capture_trace: bool = True,
        validate_invariants: bool = False,
        max_trace_entries: Optional[int] = 1000,
    ):
        self.config = AllocatorConfig(
            capacity=capacity,
            allow_duplicate_owners=allow_duplicate_owners,
            capture_trace=capture_trace,
            validate_invariants=validate_invariants,
            max_trace_entries=max_trace_entries,
        )
        self.logger = logging.getLogger(__name__)
        self.partition = BlockPartition(self.config.capacity, capture_trace=capture_trace)
        self.allocators: Dict[AllocationStrategy, PlacementAllocator] = {}
        self.release_count = 0
        self.failed_release_count = 0
        self.rejected_count = 0
        self.compaction_count = 0
        self.total_freed = 0

        self.register_allocator(FirstFitAllocator())
        self.register_allocator(BestFitAllocator())
        self.register_allocator(WorstFitAllocator())

    @classmethod
    def from_config(cls, config: AllocatorConfig) -> "ContiguousMemoryAllocator":
        return cls(**config.model_dump())

    @property
    def capacity(self) -> int:
        return self.config.capacity

    def register_allocator(self, allocator: PlacementAllocator):
        """Register the placement algorithm used for its strategy"""
        self.allocators[allocator.strategy] = allocator

    def _validate_owner(self, owner: str) -> None:
        if not isinstance(owner, str) or not owner:
            raise ValueError(f"Owner must be a non-empty string, got {owner!r}")

    def _validate_size(self, size: int) -> None:
        if isinstance(size, bool) or not isinstance(size, int):
            raise ValueError(f"Size must be an integer, got {size!r}")
        if size <= 0:
            raise ValueError(f"Size must be greater than 0, got {size}")

    def _after_mutation(self) -> None:
        self.partition.trim_traces(self.config.max_trace_entries)
        if self.config.validate_invariants:
            self.partition.check_invariants()

    def allocate(
        self,
        owner: str,
        size: int,
        strategy: Union[AllocationStrategy, str] = AllocationStrategy.FIRST_FIT,
    ) -> AllocationResult:
        """
        Allocate ``size`` contiguous units to ``owner`` using ``strategy``.

        Args:
            owner (str): Label of the requesting entity.
            size (int): Number of units, must be positive.
            strategy (Union[AllocationStrategy, str]): Strategy or its letter F/B/W.

        Returns:
            AllocationResult: Truthy on success. Failures leave the partition unchanged.

        Raises:
            ValueError: If ``owner`` is empty or ``size`` is not a positive integer.
        """
        self._validate_owner(owner)
        self._validate_size(size)

        try:
            strategy = AllocationStrategy.from_code(strategy)
        except ValueError as e:
            self.rejected_count += 1
            self.logger.warning(f"Rejected request from {owner}: {e}")
            return AllocationResult(
                success=False, owner=owner, size=size, error_message=str(e)
            )

        if not self.config.allow_duplicate_owners and self.partition.blocks_of(owner):
            self.rejected_count += 1
            message = f"Owner {owner} already holds a block"
            self.logger.warning(message)
            return AllocationResult(
                success=False,
                owner=owner,
                size=size,
                strategy=strategy,
                error_message=message,
            )

        request = AllocationRequest(owner=owner, size=size, strategy=strategy)
        result = self.allocators[strategy].allocate(self.partition, request)
        if result.success:
            self.logger.info(
                f"Allocated [{result.address}:{result.end_address}] ({size}) to {owner} "
                f"using {strategy.algorithm}"
            )
            self._after_mutation()
        else:
            self.logger.warning(f"Cannot allocate {size} to {owner}: {result.error_message}")
        return result

    def can_allocate(
        self,
        size: int,
        strategy: Union[AllocationStrategy, str] = AllocationStrategy.FIRST_FIT,
    ) -> bool:
        """Check if a request of ``size`` would succeed without allocating"""
        self._validate_size(size)
        return self.allocators[AllocationStrategy.from_code(strategy)].can_allocate(
            self.partition, size
        )

    def release(self, owner: str) -> ReleaseResult:
        """Free every block labelled ``owner`` and coalesce the freed space"""
        self._validate_owner(owner)
        freed = self.partition.free_owner(owner)
        if not freed:
            self.failed_release_count += 1
            self.logger.warning(f"Release of unknown owner {owner}")
            return ReleaseResult(
                success=False,
                owner=owner,
                error_message=f"Process {owner} not found",
            )

        freed_size = sum(block.size for block in freed)
        merges = self.partition.coalesce()

        self.release_count += 1
        self.total_freed += freed_size
        self.logger.info(
            f"Released {len(freed)} block(s) ({freed_size}) held by {owner}, {merges} merge(s)"
        )
        self._after_mutation()
        return ReleaseResult(
            success=True,
            owner=owner,
            freed_blocks=len(freed),
            freed_size=freed_size,
            coalesced=merges > 0,
        )

    def compact(self) -> CompactionResult:
        """Move every owned block toward address 0, leaving one trailing hole"""
        outcome = self.partition.compact()
        self.compaction_count += 1
        self.logger.info(
            f"Compacted memory: moved {outcome['moved_blocks']} block(s), "
            f"{outcome['free_size']} free at the top"
        )
        self._after_mutation()
        return CompactionResult(**outcome)

    def status(self) -> List[StatusEntry]:
        """Snapshot of the partition in ascending address order"""
        return self.partition.status()

    def blocks_of(self, owner: str) -> List[StatusEntry]:
        return [block.to_status() for block in self.partition.blocks_of(owner)]

    def owners(self) -> List[str]:
        return self.partition.owners()

    def check_invariants(self) -> None:
        self.partition.check_invariants()

    def get_memory_summary(self) -> Dict[str, Any]:
        return self.partition.get_memory_summary()

    def get_traces(self, operation: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.partition.get_traces(operation)

    def get_statistics(self) -> Dict[str, Any]:
        """Get allocator statistics"""
        per_strategy = {
            strategy.algorithm: allocator.get_statistics()
            for strategy, allocator in self.allocators.items()
        }
        total_allocated = sum(a.total_allocated for a in self.allocators.values())
        return {
            "allocation_count": sum(a.allocation_count for a in self.allocators.values()),
            "failed_allocation_count": sum(
                a.failure_count for a in self.allocators.values()
            ),
            "rejected_count": self.rejected_count,
            "release_count": self.release_count,
            "failed_release_count": self.failed_release_count,
            "compaction_count": self.compaction_count,
            "total_allocated": total_allocated,
            "total_freed": self.total_freed,
            "currently_allocated": total_allocated - self.total_freed,
            "strategies": per_strategy,
        }

    def reset(self):
        """Reset to a single free block and clear statistics"""
        self.partition.traces.clear()
        self.partition.reset()
        for allocator in self.allocators.values():
            allocator.reset_statistics()
        self.release_count = 0
        self.failed_release_count = 0
        self.rejected_count = 0
        self.compaction_count = 0
        self.total_freed = 0
