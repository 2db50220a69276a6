"""
API router for block endpoints.
"""
from fastapi import APIRouter, Path, status
from typing import Annotated

from field_hierarchy.api.dependencies import HierarchyServiceDep
from field_hierarchy.api.v1.models.requests import RenameRequest
from field_hierarchy.api.v1.models.responses import ERROR_RESPONSES
from field_hierarchy.domain.models import (
    Block,
    BlockCreate,
    BlockUpdate,
    CascadeDeleteResult,
)


router = APIRouter(
    prefix="/blocks",
    tags=["blocks"],
    responses=ERROR_RESPONSES,
)

BlockId = Annotated[int, Path(description="Row id of the block")]


@router.post(
    "",
    response_model=Block,
    status_code=status.HTTP_201_CREATED,
    summary="Create a block",
    description="""
    Create a block under an existing phase.
    
    The block starts with zero aggregates and the owning phase's
    Area, Trees, Density and BlockCount are recomputed from its blocks.
    """,
)
async def create_block(
    block: BlockCreate,
    hierarchy_service: HierarchyServiceDep,
) -> Block:
    return await hierarchy_service.create_block(block)


@router.patch(
    "/{block_id}",
    response_model=Block,
    summary="Update a block",
)
async def update_block(
    block_id: BlockId,
    updates: BlockUpdate,
    hierarchy_service: HierarchyServiceDep,
) -> Block:
    """
    Update a block and recompute its phase.
    
    Moving the block to another phase recomputes both phases.
    """
    return await hierarchy_service.update_block(block_id, updates)


@router.post(
    "/{block_id}/rename",
    response_model=Block,
    summary="Rename a block",
)
async def rename_block(
    block_id: BlockId,
    body: RenameRequest,
    hierarchy_service: HierarchyServiceDep,
) -> Block:
    return await hierarchy_service.rename_block(block_id, body.new_key)


@router.delete(
    "/{block_id}",
    response_model=CascadeDeleteResult,
    summary="Delete a block with all of its tasks",
)
async def delete_block(
    block_id: BlockId,
    hierarchy_service: HierarchyServiceDep,
) -> CascadeDeleteResult:
    return await hierarchy_service.delete_block(block_id)
