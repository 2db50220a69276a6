"""
Unit tests for the aggregate calculator.

Tests cover:
- Task density rule
- Block aggregate from tasks
- Phase aggregate from blocks
- Zero-division safety
- Determinism of repeated reductions
"""
import pytest

from field_hierarchy.domain.models import Block, Task
from field_hierarchy.services.domain.aggregate_calculator import (
    aggregate_from_blocks,
    aggregate_from_tasks,
    density,
)


def make_task(key: str, area=None, trees=None, fk_block="B1") -> Task:
    return Task(task=key, area=area, trees=trees, fk_block=fk_block)


def make_block(key: str, area=None, trees=None, fk_phase="P1") -> Block:
    return Block(block=key, area=area, trees=trees, fk_phase=fk_phase)


# ============================================================
# Density Tests
# ============================================================

class TestDensity:
    """Tests for the trees-per-area rule."""

    def test_density_divides_trees_by_area(self):
        assert density(40, 2.0) == 20.0

    @pytest.mark.parametrize("trees,area", [
        (10, 0),
        (10, 0.0),
        (10, None),
        (None, 2.0),
        (0, 2.0),
        (10, -1.0),
    ])
    def test_density_is_zero_when_undefined(self, trees, area):
        """Missing or non-positive area, or missing trees, gives 0 rather than an error."""
        assert density(trees, area) == 0.0


# ============================================================
# Block Aggregate Tests
# ============================================================

class TestAggregateFromTasks:
    """Tests for reducing tasks into a block aggregate."""

    def test_empty_input_is_all_zero(self):
        aggregate = aggregate_from_tasks([])

        assert aggregate.area == 0
        assert aggregate.trees == 0
        assert aggregate.density == 0
        assert aggregate.task_count == 0

    def test_sums_area_and_trees(self):
        aggregate = aggregate_from_tasks([
            make_task("T1", area=2.0, trees=40),
            make_task("T2", area=3.0, trees=30),
        ])

        assert aggregate.area == 5.0
        assert aggregate.trees == 70
        assert aggregate.density == 14.0
        assert aggregate.task_count == 2

    def test_missing_values_count_as_zero(self):
        """Tasks without Area/Trees still count but add nothing to the totals."""
        aggregate = aggregate_from_tasks([
            make_task("T1", area=2.0, trees=40),
            make_task("T2"),
        ])

        assert aggregate.area == 2.0
        assert aggregate.trees == 40
        assert aggregate.task_count == 2

    def test_density_weighted_by_area_not_averaged(self):
        """Density comes from the totals, not from the children's densities."""
        aggregate = aggregate_from_tasks([
            make_task("T1", area=1.0, trees=100),  # density 100
            make_task("T2", area=3.0, trees=60),   # density 20
        ])

        assert aggregate.density == 40.0

    def test_zero_total_area_gives_zero_density(self):
        aggregate = aggregate_from_tasks([
            make_task("T1", area=0.0, trees=50),
            make_task("T2", area=None, trees=25),
        ])

        assert aggregate.trees == 75
        assert aggregate.density == 0.0

    def test_patch_uses_store_column_names(self):
        patch = aggregate_from_tasks([make_task("T1", area=2.0, trees=40)]).to_patch()

        assert patch == {"Area": 2.0, "Trees": 40, "Density": 20.0, "TaskCount": 1}


# ============================================================
# Phase Aggregate Tests
# ============================================================

class TestAggregateFromBlocks:
    """Tests for reducing blocks into a phase aggregate."""

    def test_empty_input_is_all_zero(self):
        patch = aggregate_from_blocks([]).to_patch()

        assert patch == {"Area": 0.0, "Trees": 0, "Density": 0.0, "BlockCount": 0}

    def test_sums_blocks(self):
        aggregate = aggregate_from_blocks([
            make_block("B1", area=5.0, trees=70),
            make_block("B2", area=5.0, trees=30),
            make_block("B3"),
        ])

        assert aggregate.area == 10.0
        assert aggregate.trees == 100
        assert aggregate.density == 10.0
        assert aggregate.block_count == 3


# ============================================================
# Determinism Tests
# ============================================================

class TestDeterminism:
    """Repeated reductions over the same children must agree exactly."""

    def test_same_input_gives_identical_output(self):
        tasks = [make_task(f"T{i}", area=0.1 * i, trees=i) for i in range(1, 20)]

        first = aggregate_from_tasks(tasks).to_patch()
        second = aggregate_from_tasks(tasks).to_patch()

        assert first == second

    def test_order_of_children_does_not_change_totals(self):
        """The store may return rows in any order."""
        tasks = [make_task(f"T{i}", area=a, trees=1) for i, a in enumerate([0.1, 0.2, 0.3, 1e-3, 7.7])]

        forward = aggregate_from_tasks(tasks).to_patch()
        backward = aggregate_from_tasks(list(reversed(tasks))).to_patch()

        assert forward == backward


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
