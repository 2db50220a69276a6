"""
Domain models for the Phase -> Block -> Task planning hierarchy.

These models represent the core domain entities and should be independent
of any infrastructure concerns (HTTP clients, databases, etc.). Field aliases
are the column names of the store schema, so ``model_dump(by_alias=True)``
produces rows the store accepts directly.
"""
from datetime import date
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, StringConstraints


# Human-meaningful identifier used for cross-entity references. Distinct from
# the numeric row id; children reference their parent by natural key.
NaturalKey = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
RowId = int


# ============================================================
# Stored rows
# ============================================================

class Phase(BaseModel):
    """Root of the hierarchy. All numeric fields are derived from blocks."""
    id: Optional[RowId] = None
    phase: str = Field(alias="Phase")
    area: Optional[float] = Field(default=None, alias="Area")
    trees: Optional[int] = Field(default=None, alias="Trees")
    density: Optional[float] = Field(default=None, alias="Density")
    block_count: Optional[int] = Field(default=None, alias="BlockCount")

    class Config:
        populate_by_name = True


class Block(BaseModel):
    """Middle level. Numeric fields are derived from the block's tasks."""
    id: Optional[RowId] = None
    block: str = Field(alias="Block")
    fk_phase: Optional[str] = Field(default=None, alias="FK_Phase")
    date_planted: Optional[str] = Field(default=None, alias="Date_Planted")
    area: Optional[float] = Field(default=None, alias="Area")
    trees: Optional[int] = Field(default=None, alias="Trees")
    density: Optional[float] = Field(default=None, alias="Density")
    task_count: Optional[int] = Field(default=None, alias="TaskCount")

    class Config:
        populate_by_name = True


class Task(BaseModel):
    """Leaf level. Area and Trees are user supplied, Density is derived."""
    id: Optional[RowId] = None
    task: str = Field(alias="Task")
    area: Optional[float] = Field(default=None, alias="Area")
    trees: Optional[int] = Field(default=None, alias="Trees")
    density: Optional[float] = Field(default=None, alias="Density")
    fk_block: Optional[str] = Field(default=None, alias="FK_Block")

    class Config:
        populate_by_name = True


# ============================================================
# Mutation payloads
#
# None of these accept derived fields: aggregates are written by the engine only.
# ============================================================

class PhaseCreate(BaseModel):
    """Payload for creating a Phase."""
    phase: NaturalKey = Field(alias="Phase")

    class Config:
        populate_by_name = True
        extra = "forbid"


class BlockCreate(BaseModel):
    """Payload for creating a Block under an existing Phase."""
    block: NaturalKey = Field(alias="Block")
    fk_phase: NaturalKey = Field(alias="FK_Phase")
    date_planted: Optional[date] = Field(default=None, alias="Date_Planted")

    class Config:
        populate_by_name = True
        extra = "forbid"


class TaskCreate(BaseModel):
    """Payload for creating a Task, normally under an existing Block."""
    task: NaturalKey = Field(alias="Task")
    area: Optional[float] = Field(default=None, ge=0, alias="Area")
    trees: Optional[int] = Field(default=None, ge=0, alias="Trees")
    fk_block: Optional[NaturalKey] = Field(default=None, alias="FK_Block")

    class Config:
        populate_by_name = True
        extra = "forbid"


class PhaseUpdate(BaseModel):
    """Partial update of a Phase. Changing ``Phase`` is a rename."""
    phase: Optional[NaturalKey] = Field(default=None, alias="Phase")

    class Config:
        populate_by_name = True
        extra = "forbid"


class BlockUpdate(BaseModel):
    """Partial update of a Block. Changing ``Block`` is a rename, ``FK_Phase`` a move."""
    block: Optional[NaturalKey] = Field(default=None, alias="Block")
    fk_phase: Optional[NaturalKey] = Field(default=None, alias="FK_Phase")
    date_planted: Optional[date] = Field(default=None, alias="Date_Planted")

    class Config:
        populate_by_name = True
        extra = "forbid"


class TaskUpdate(BaseModel):
    """Partial update of a Task. Changing ``FK_Block`` moves it to another block."""
    task: Optional[NaturalKey] = Field(default=None, alias="Task")
    area: Optional[float] = Field(default=None, ge=0, alias="Area")
    trees: Optional[int] = Field(default=None, ge=0, alias="Trees")
    fk_block: Optional[NaturalKey] = Field(default=None, alias="FK_Block")

    class Config:
        populate_by_name = True
        extra = "forbid"


# ============================================================
# Derived values and results
# ============================================================

class BlockAggregate(BaseModel):
    """Derived fields of a Block, reduced from its tasks."""
    area: float = Field(alias="Area")
    trees: int = Field(alias="Trees")
    density: float = Field(alias="Density")
    task_count: int = Field(alias="TaskCount")

    class Config:
        populate_by_name = True

    def to_patch(self) -> dict:
        return self.model_dump(by_alias=True)


class PhaseAggregate(BaseModel):
    """Derived fields of a Phase, reduced from its blocks."""
    area: float = Field(alias="Area")
    trees: int = Field(alias="Trees")
    density: float = Field(alias="Density")
    block_count: int = Field(alias="BlockCount")

    class Config:
        populate_by_name = True

    def to_patch(self) -> dict:
        return self.model_dump(by_alias=True)


class CascadeState(str, Enum):
    """Steps of the cascade-delete protocol."""
    IDLE = "idle"
    CHILD_LOOKUP = "child_lookup"
    CHILD_DELETE = "child_delete"
    SELF_DELETE = "self_delete"
    PARENT_RECOMPUTE = "parent_recompute"
    FAILED = "failed"


class CascadeDeleteResult(BaseModel):
    """Outcome of a completed cascade delete."""
    entity: str
    id: RowId
    natural_key: str
    removed_blocks: List[str] = Field(default_factory=list)
    states: List[CascadeState] = Field(default_factory=list)


class RecomputeSummary(BaseModel):
    """Counts of rows rewritten by a full repair pass."""
    tasks: int = 0
    blocks: int = 0
    phases: int = 0
