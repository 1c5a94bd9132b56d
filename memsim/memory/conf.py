from typing import Optional
from pydantic import BaseModel, Field


class AllocatorConfig(BaseModel):
    """
    AllocatorConfig defines the parameters of a contiguous memory allocator.

    Attributes:
        capacity (int): Total addressable size. The address space is ``[0, capacity)``.
        allow_duplicate_owners (bool): Whether an owner already holding a block may
            allocate another one. Defaults to False.
        capture_trace (bool): Whether to record a trace entry for each mutation.
        validate_invariants (bool): Whether to verify the partition invariants after
            every mutating operation.
        max_trace_entries (Optional[int]): Upper bound on retained trace entries,
            None keeps every entry.

    Example:
        >>> config = AllocatorConfig(capacity=100)
        >>> config.allow_duplicate_owners
        False
    """

    capacity: int = Field(
        gt=0,
        strict=True,
        title="Capacity",
        description="Total addressable size of the simulated memory",
    )
    allow_duplicate_owners: bool = Field(
        default=False,
        title="Allow Duplicate Owners",
        description="Allow an owner label to hold more than one block at a time",
    )
    capture_trace: bool = Field(
        default=True,
        title="Capture Trace",
        description="Record a trace entry for every split, release, coalesce and compaction",
    )
    validate_invariants: bool = Field(
        default=False,
        title="Validate Invariants",
        description="Check the partition invariants after every mutating operation",
    )
    max_trace_entries: Optional[int] = Field(
        default=1000,
        ge=0,
        title="Max Trace Entries",
        description="Number of most recent trace entries to keep, None for unbounded",
    )
