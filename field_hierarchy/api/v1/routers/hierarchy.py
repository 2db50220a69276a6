"""
API router for whole-tree maintenance endpoints.
"""
from fastapi import APIRouter

from field_hierarchy.api.dependencies import HierarchyServiceDep
from field_hierarchy.api.v1.models.responses import ERROR_RESPONSES
from field_hierarchy.domain.models import RecomputeSummary


router = APIRouter(
    prefix="/hierarchy",
    tags=["hierarchy"],
    responses=ERROR_RESPONSES,
)


@router.post(
    "/recompute",
    response_model=RecomputeSummary,
    summary="Recompute every aggregate",
    description="""
    Repair pass over the whole tree: task densities, then blocks from their
    tasks, then phases from their blocks. Use after a partially failed
    mutation left a stale aggregate behind.
    """,
)
async def recompute_all(
    hierarchy_service: HierarchyServiceDep,
) -> RecomputeSummary:
    return await hierarchy_service.recompute_all()
