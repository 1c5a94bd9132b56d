"""
Shared pytest configuration and fixtures for contiguous allocator tests.
"""

import pytest

from memsim.memory import (
    AllocationStrategy,
    BlockPartition,
    ContiguousMemoryAllocator,
)


@pytest.fixture
def allocator():
    """Create an allocator over 100 units with invariant checks enabled"""
    return ContiguousMemoryAllocator(100, validate_invariants=True)


@pytest.fixture
def partition():
    """Create a bare partition over 100 units"""
    return BlockPartition(100)


@pytest.fixture
def two_hole_allocator(allocator):
    """Free holes of size 30 at [0:29] and 50 at [50:99], B holding [30:49]"""
    allocator.allocate("A", 30, AllocationStrategy.FIRST_FIT)
    allocator.allocate("B", 20, AllocationStrategy.FIRST_FIT)
    allocator.release("A")
    return allocator


@pytest.fixture
def scattered_allocator(allocator):
    """A, B and C of sizes 10, 20, 30 separated by free gaps of 5"""
    for owner, size in [("A", 10), ("G1", 5), ("B", 20), ("G2", 5), ("C", 30)]:
        allocator.allocate(owner, size, "F")
    allocator.release("G1")
    allocator.release("G2")
    return allocator


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add automatic markers"""
    for item in items:
        if not any(item.iter_markers()):
            item.add_marker(pytest.mark.unit)


# Custom assertions
def _assert_partition_consistency(allocator):
    """Assert that the partition covers the capacity exactly with no adjacent free blocks"""
    entries = allocator.status()
    assert entries, "partition must never be empty"
    assert entries[0].start == 0
    assert entries[-1].end == allocator.capacity - 1
    for previous, current in zip(entries, entries[1:]):
        assert current.start == previous.end + 1
        assert not (previous.is_free and current.is_free)
    for entry in entries:
        assert entry.size == entry.end - entry.start + 1 > 0
    assert sum(entry.size for entry in entries) == allocator.capacity


def _layout(allocator):
    """Compact view of the partition as (start, end, owner) tuples"""
    return [(e.start, e.end, e.owner) for e in allocator.status()]


@pytest.fixture
def assert_consistent():
    """Provide the partition consistency assertion"""
    return _assert_partition_consistency


@pytest.fixture
def layout():
    """Provide the (start, end, owner) view of an allocator"""
    return _layout
