"""
Domain service: reduce child rows into a parent's derived fields.

Pure functions, no I/O. Density is always taken from freshly summed totals
rather than averaged from the children's own densities, so it stays weighted
by area.
"""
import math
from typing import Iterable, Optional, Sequence

from field_hierarchy.domain.models import (
    Block,
    BlockAggregate,
    PhaseAggregate,
    Task,
)


def density(trees: Optional[float], area: Optional[float]) -> float:
    """
    Trees per unit of area.

    Args:
        trees: Tree count, None treated as missing
        area: Area, None treated as missing

    Returns:
        trees / area, or 0.0 when area is missing/non-positive or trees is missing
    """
    if not area or area <= 0 or not trees:
        return 0.0
    return trees / area


def _totals(rows: Iterable) -> tuple[float, int]:
    rows = list(rows)
    # fsum keeps the total independent of the order the store returns rows in
    total_area = math.fsum(row.area or 0 for row in rows)
    total_trees = sum(row.trees or 0 for row in rows)
    return total_area, total_trees


def aggregate_from_tasks(tasks: Sequence[Task]) -> BlockAggregate:
    """
    Compute a Block's derived fields from all of its tasks.

    Args:
        tasks: Every task whose FK_Block is the block's natural key

    Returns:
        BlockAggregate; all zero for an empty input
    """
    total_area, total_trees = _totals(tasks)
    return BlockAggregate(
        area=total_area,
        trees=total_trees,
        density=density(total_trees, total_area),
        task_count=len(tasks),
    )


def aggregate_from_blocks(blocks: Sequence[Block]) -> PhaseAggregate:
    """
    Compute a Phase's derived fields from all of its blocks.

    Args:
        blocks: Every block whose FK_Phase is the phase's natural key

    Returns:
        PhaseAggregate; all zero for an empty input
    """
    total_area, total_trees = _totals(blocks)
    return PhaseAggregate(
        area=total_area,
        trees=total_trees,
        density=density(total_trees, total_area),
        block_count=len(blocks),
    )
