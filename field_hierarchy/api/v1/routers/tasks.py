"""
API router for task endpoints.
"""
from fastapi import APIRouter, Path, status
from typing import Annotated

from field_hierarchy.api.dependencies import HierarchyServiceDep
from field_hierarchy.api.v1.models.responses import ERROR_RESPONSES
from field_hierarchy.domain.models import (
    CascadeDeleteResult,
    Task,
    TaskCreate,
    TaskUpdate,
)


router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
    responses=ERROR_RESPONSES,
)

TaskId = Annotated[int, Path(description="Row id of the task")]


@router.post(
    "",
    response_model=Task,
    status_code=status.HTTP_201_CREATED,
    summary="Create a task",
    description="""
    Create a task under an existing block.
    
    This endpoint:
    1. Computes the task's Density from its Area and Trees
    2. Inserts the task
    3. Recomputes the owning block from all of its tasks
    4. Recomputes the block's phase from all of its blocks
    """,
    responses={
        201: {
            "description": "Task created and parents recomputed",
            "content": {
                "application/json": {
                    "example": {
                        "id": 7,
                        "Task": "T1",
                        "Area": 2.0,
                        "Trees": 40,
                        "Density": 20.0,
                        "FK_Block": "B1",
                    }
                }
            }
        },
    }
)
async def create_task(
    task: TaskCreate,
    hierarchy_service: HierarchyServiceDep,
) -> Task:
    return await hierarchy_service.create_task(task)


@router.patch(
    "/{task_id}",
    response_model=Task,
    summary="Update a task",
)
async def update_task(
    task_id: TaskId,
    updates: TaskUpdate,
    hierarchy_service: HierarchyServiceDep,
) -> Task:
    """
    Update a task, recompute its density if needed, then its block and phase.
    """
    return await hierarchy_service.update_task(task_id, updates)


@router.delete(
    "/{task_id}",
    response_model=CascadeDeleteResult,
    summary="Delete a task",
)
async def delete_task(
    task_id: TaskId,
    hierarchy_service: HierarchyServiceDep,
) -> CascadeDeleteResult:
    return await hierarchy_service.delete_task(task_id)
