"""
API router for phase endpoints.
"""
from fastapi import APIRouter, Path, status
from typing import Annotated

from field_hierarchy.api.dependencies import HierarchyServiceDep
from field_hierarchy.api.v1.models.requests import RenameRequest
from field_hierarchy.api.v1.models.responses import ERROR_RESPONSES
from field_hierarchy.domain.models import (
    CascadeDeleteResult,
    Phase,
    PhaseCreate,
    PhaseUpdate,
)


router = APIRouter(
    prefix="/phases",
    tags=["phases"],
    responses=ERROR_RESPONSES,
)

PhaseId = Annotated[int, Path(description="Row id of the phase")]


@router.post(
    "",
    response_model=Phase,
    status_code=status.HTTP_201_CREATED,
    summary="Create a phase",
)
async def create_phase(
    phase: PhaseCreate,
    hierarchy_service: HierarchyServiceDep,
) -> Phase:
    """
    Create a standalone phase with zero aggregates.
    """
    return await hierarchy_service.create_phase(phase)


@router.patch(
    "/{phase_id}",
    response_model=Phase,
    summary="Update a phase",
)
async def update_phase(
    phase_id: PhaseId,
    updates: PhaseUpdate,
    hierarchy_service: HierarchyServiceDep,
) -> Phase:
    """
    Update a phase. Changing its key repoints its blocks.
    """
    return await hierarchy_service.update_phase(phase_id, updates)


@router.post(
    "/{phase_id}/rename",
    response_model=Phase,
    summary="Rename a phase",
)
async def rename_phase(
    phase_id: PhaseId,
    body: RenameRequest,
    hierarchy_service: HierarchyServiceDep,
) -> Phase:
    """
    Rename a phase, repointing its blocks and recomputing its aggregate.
    """
    return await hierarchy_service.rename_phase(phase_id, body.new_key)


@router.delete(
    "/{phase_id}",
    response_model=CascadeDeleteResult,
    summary="Delete a phase with all blocks and tasks",
)
async def delete_phase(
    phase_id: PhaseId,
    hierarchy_service: HierarchyServiceDep,
) -> CascadeDeleteResult:
    """
    Delete the phase's tasks, then its blocks, then the phase itself.
    """
    return await hierarchy_service.delete_phase(phase_id)
