from .blocks import (
    Block,
    BlockPartition,
    PartitionInvariantError,
    StatusEntry,
    TraceInfo,
)
from .conf import AllocatorConfig
from .allocator import (
    AllocationRequest,
    AllocationResult,
    AllocationStrategy,
    BestFitAllocator,
    CompactionResult,
    ContiguousMemoryAllocator,
    FirstFitAllocator,
    PlacementAllocator,
    ReleaseResult,
    WorstFitAllocator,
)

__all__ = [
    "Block",
    "BlockPartition",
    "PartitionInvariantError",
    "StatusEntry",
    "TraceInfo",
    "AllocatorConfig",
    "AllocationRequest",
    "AllocationResult",
    "AllocationStrategy",
    "BestFitAllocator",
    "CompactionResult",
    "ContiguousMemoryAllocator",
    "FirstFitAllocator",
    "PlacementAllocator",
    "ReleaseResult",
    "WorstFitAllocator",
]
