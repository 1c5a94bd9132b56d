import pytest
from unittest.mock import patch
from memsim.memory import (
    Block,
    BlockPartition,
    PartitionInvariantError,
    StatusEntry,
    TraceInfo,
)


class TestTraceInfo:
    """Test cases for TraceInfo class - recording partition operations."""

    @patch("memsim.memory.blocks.time.time_ns", return_value=1234567890)
    def test_capture(self, mock_time):
        trace = TraceInfo.capture("alloc", owner="A", start=0, end=9)

        assert trace.timestamp_ns == 1234567890
        assert trace.operation == "alloc"
        assert trace.owner == "A"
        assert trace.additional_info == {}

    def test_to_dict(self):
        trace = TraceInfo(
            timestamp_ns=1000,
            operation="split",
            start=0,
            end=99,
            additional_info={"allocated_size": 10},
        )

        assert trace.to_dict() == {
            "timestamp_ns": 1000,
            "operation": "split",
            "owner": None,
            "start": 0,
            "end": 99,
            "additional_info": {"allocated_size": 10},
        }


class TestBlock:
    """Test cases for Block - an inclusive address range with an optional owner."""

    def test_size_is_inclusive(self):
        assert Block(0, 29).size == 30
        assert Block(5, 5).size == 1

    def test_free_versus_owned(self):
        assert Block(0, 9).is_free
        assert not Block(0, 9, "A").is_free
        assert Block(0, 9, "A").is_allocated()

    def test_empty_string_owner_is_not_free(self):
        block = Block(0, 9, "")
        assert not block.is_free

    def test_to_status(self):
        assert Block(10, 19, "B").to_status() == StatusEntry(10, 19, 10, "B")


class TestBlockPartition:
    """Test cases for BlockPartition - the ordered partition container."""

    def test_initial_state(self, partition):
        assert partition.capacity == 100
        assert partition.status() == [StatusEntry(0, 99, 100, None)]
        assert partition.get_traces("create")[0]["end"] == 99

    @pytest.mark.parametrize("capacity", [0, -10])
    def test_invalid_capacity(self, capacity):
        with pytest.raises(ValueError):
            BlockPartition(capacity)

    def test_non_integer_capacity(self):
        with pytest.raises(TypeError):
            BlockPartition(10.5)

    def test_split_with_remainder(self, partition):
        hole = partition.blocks[0]
        allocated = partition.split(hole, 30, "A")

        assert (allocated.start, allocated.end, allocated.owner) == (0, 29, "A")
        assert partition.status() == [
            StatusEntry(0, 29, 30, "A"),
            StatusEntry(30, 99, 70, None),
        ]
        assert len(partition.get_traces("split")) == 1

    def test_split_exact_fit_leaves_no_remainder(self, partition):
        partition.split(partition.blocks[0], 100, "A")

        assert partition.status() == [StatusEntry(0, 99, 100, "A")]
        assert partition.get_traces("split") == []
        assert len(partition.get_traces("alloc")) == 1

    def test_split_allocated_block_raises(self, partition):
        allocated = partition.split(partition.blocks[0], 10, "A")
        with pytest.raises(MemoryError):
            partition.split(allocated, 5, "B")

    def test_split_too_large_raises(self, partition):
        with pytest.raises(ValueError):
            partition.split(partition.blocks[0], 101, "A")

    def test_free_owner_clears_every_matching_block(self, partition):
        partition.split(partition.blocks[-1], 10, "A")
        partition.split(partition.blocks[-1], 10, "B")
        partition.split(partition.blocks[-1], 10, "A")

        freed = partition.free_owner("A")

        assert [(b.start, b.end) for b in freed] == [(0, 9), (20, 29)]
        assert partition.blocks_of("A") == []
        assert partition.owners() == ["B"]

    def test_free_owner_unknown(self, partition):
        before = partition.status()
        assert partition.free_owner("nobody") == []
        assert partition.status() == before

    def test_coalesce_chain_of_free_blocks(self, partition):
        for owner in ["A", "B", "C"]:
            partition.split(partition.blocks[-1], 10, owner)
        for owner in ["A", "B", "C"]:
            partition.free_owner(owner)
        assert len(partition) == 4

        merges = partition.coalesce()

        assert merges == 3
        assert partition.status() == [StatusEntry(0, 99, 100, None)]
        partition.check_invariants()

    def test_coalesce_keeps_owned_blocks_apart(self, partition):
        for owner in ["A", "B", "C", "D"]:
            partition.split(partition.blocks[-1], 10, owner)
        for owner in ["A", "C", "D"]:
            partition.free_owner(owner)

        assert partition.coalesce() == 2
        assert [(e.start, e.end, e.owner) for e in partition.status()] == [
            (0, 9, None),
            (10, 19, "B"),
            (20, 99, None),
        ]

    def test_compact_rebuilds_in_relative_order(self, partition):
        for owner in ["A", "x", "B", "y", "C"]:
            partition.split(partition.blocks[-1], 10, owner)
        partition.free_owner("x")
        partition.free_owner("y")
        partition.coalesce()

        outcome = partition.compact()

        assert outcome == {"moved_blocks": 2, "moved_size": 20, "free_size": 70}
        assert [(e.start, e.end, e.owner) for e in partition.status()] == [
            (0, 9, "A"),
            (10, 19, "B"),
            (20, 29, "C"),
            (30, 99, None),
        ]

    def test_compact_full_memory_has_no_free_block(self, partition):
        partition.split(partition.blocks[0], 100, "A")
        outcome = partition.compact()
        assert outcome["free_size"] == 0
        assert partition.free_blocks() == []

    def test_reset(self, partition):
        partition.split(partition.blocks[0], 30, "A")
        partition.reset()
        assert partition.status() == [StatusEntry(0, 99, 100, None)]

    def test_trace_capture_disabled(self):
        partition = BlockPartition(50, capture_trace=False)
        partition.split(partition.blocks[0], 10, "A")
        assert partition.traces == []

    def test_trim_traces_keeps_most_recent(self, partition):
        for owner in ["A", "B", "C"]:
            partition.split(partition.blocks[-1], 10, owner)
        partition.trim_traces(2)
        assert [t["operation"] for t in partition.get_traces()] == ["split", "alloc"]
        assert partition.get_traces()[-1]["owner"] == "C"


class TestPartitionInvariants:
    """Test cases for defect detection in check_invariants."""

    def test_fresh_partition_is_valid(self, partition):
        partition.check_invariants()

    def test_detects_adjacent_free_blocks(self, partition):
        partition.split(partition.blocks[0], 10, "A")
        partition.blocks[0].owner = None
        with pytest.raises(PartitionInvariantError, match="Adjacent free"):
            partition.check_invariants()

    def test_detects_overlap(self, partition):
        partition.split(partition.blocks[0], 10, "A")
        partition.blocks.add(Block(5, 12, "B"))
        with pytest.raises(PartitionInvariantError, match="overlap"):
            partition.check_invariants()

    def test_detects_gap(self, partition):
        partition.split(partition.blocks[0], 10, "A")
        tail = partition.blocks[-1]
        partition.blocks.remove(tail)
        partition.blocks.add(Block(tail.start + 1, tail.end))
        with pytest.raises(PartitionInvariantError, match="gap"):
            partition.check_invariants()

    def test_detects_short_coverage(self, partition):
        partition.blocks[0].end = 89
        with pytest.raises(PartitionInvariantError, match="expected 99"):
            partition.check_invariants()

    def test_invariant_error_is_assertion(self):
        assert issubclass(PartitionInvariantError, AssertionError)


class TestMemorySummary:
    """Test cases for the partition summary."""

    def test_fresh_partition(self, partition):
        summary = partition.get_memory_summary()
        assert summary["total_free_bytes"] == 100
        assert summary["allocated_blocks"] == 0
        assert summary["largest_free_block"] == 100
        assert summary["utilization_ratio"] == 0.0
        assert summary["external_fragmentation"] == 0.0

    def test_fragmented_partition(self, partition):
        partition.split(partition.blocks[-1], 30, "A")
        partition.split(partition.blocks[-1], 10, "B")
        partition.split(partition.blocks[-1], 20, "C")
        partition.free_owner("A")
        partition.coalesce()

        summary = partition.get_memory_summary()

        assert summary["total_allocated_bytes"] == 30
        assert summary["total_free_bytes"] == 70
        assert summary["free_blocks"] == 2
        assert summary["allocated_blocks"] == 2
        assert summary["largest_free_block"] == 40
        assert summary["utilization_ratio"] == pytest.approx(0.3)
        assert summary["external_fragmentation"] == pytest.approx(1 - 40 / 70)

    def test_full_partition(self, partition):
        partition.split(partition.blocks[0], 100, "A")
        summary = partition.get_memory_summary()
        assert summary["external_fragmentation"] == 0.0
        assert summary["utilization_ratio"] == 1.0
