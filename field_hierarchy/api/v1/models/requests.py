"""
API request models using Pydantic.

Create/update bodies reuse the domain payload models; only bodies with no
domain counterpart live here.
"""
from pydantic import BaseModel, Field


class RenameRequest(BaseModel):
    """Request body for the rename endpoints."""
    new_key: str = Field(
        min_length=1,
        description="New natural key; children are repointed to it",
        examples=["P2"],
    )
