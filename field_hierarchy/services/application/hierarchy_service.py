"""
Application service: mutation coordinator for the Phase -> Block -> Task tree.

Each public method is one logical operation executed as an ordered sequence
of awaited gateway calls: apply the requested change, then recompute the
affected parent (and grandparent) from the children currently persisted.
Aggregates are never adjusted incrementally, so every recompute is idempotent
and repairs whatever stale value was there before.

There is no rollback. A failing step aborts the operation and the error is
raised to the caller with earlier steps left applied; the next mutation that
touches the same subtree (or ``recompute_all``) restores the aggregates.
"""
import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from field_hierarchy.config import settings
from field_hierarchy.domain.errors import (
    DuplicateKeyError,
    HierarchyError,
    NotFoundError,
    ValidationError,
)
from field_hierarchy.domain.models import (
    Block,
    BlockAggregate,
    BlockCreate,
    BlockUpdate,
    CascadeDeleteResult,
    CascadeState,
    Phase,
    PhaseAggregate,
    PhaseCreate,
    PhaseUpdate,
    RecomputeSummary,
    RowId,
    Task,
    TaskCreate,
    TaskUpdate,
)
from field_hierarchy.infrastructure.gateway import (
    PersistenceGateway,
    Record,
    TableGateway,
)
from field_hierarchy.services.domain.aggregate_calculator import (
    aggregate_from_blocks,
    aggregate_from_tasks,
    density,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class CascadeDeleteTracker:
    """
    Records the progress of one cascade delete.

    Idle -> ChildLookup -> ChildDelete -> SelfDelete -> ParentRecompute -> Idle.
    Leaves skip ChildDelete, the root skips ParentRecompute. Any step may end
    in Failed, which is terminal.
    """

    _TRANSITIONS = {
        CascadeState.IDLE: {CascadeState.CHILD_LOOKUP},
        CascadeState.CHILD_LOOKUP: {CascadeState.CHILD_DELETE, CascadeState.SELF_DELETE},
        CascadeState.CHILD_DELETE: {CascadeState.SELF_DELETE},
        CascadeState.SELF_DELETE: {CascadeState.PARENT_RECOMPUTE, CascadeState.IDLE},
        CascadeState.PARENT_RECOMPUTE: {CascadeState.IDLE},
    }

    def __init__(self, entity: str, row_id: RowId):
        self.entity = entity
        self.row_id = row_id
        self.state = CascadeState.IDLE
        self.history: List[CascadeState] = [CascadeState.IDLE]
        self.natural_key = ""
        self.removed_blocks: List[str] = []

    def advance(self, state: CascadeState) -> None:
        if state not in self._TRANSITIONS.get(self.state, set()):
            raise RuntimeError(
                f"Illegal cascade transition {self.state.value} -> {state.value}"
            )
        logger.debug(f"Delete {self.entity} {self.row_id}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def fail(self) -> CascadeState:
        """Move to Failed and return the step that was running."""
        failed_at = self.state
        self.state = CascadeState.FAILED
        self.history.append(CascadeState.FAILED)
        return failed_at

    def result(self) -> CascadeDeleteResult:
        return CascadeDeleteResult(
            entity=self.entity,
            id=self.row_id,
            natural_key=self.natural_key,
            removed_blocks=self.removed_blocks,
            states=self.history,
        )


def _distinct_keys(*keys: Optional[str]) -> List[str]:
    result = []
    for key in keys:
        if key and key not in result:
            result.append(key)
    return result


class HierarchyService:
    """
    Coordinator for create/update/delete at every level of the tree.

    The persistence gateway is injected so the same coordinator runs against
    Supabase in production and an in-memory store in tests.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        allow_natural_key_rename: Optional[bool] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            gateway: Persistence gateway for the three collections
            allow_natural_key_rename: Override for settings.allow_natural_key_rename
        """
        self.gateway = gateway
        if allow_natural_key_rename is None:
            allow_natural_key_rename = settings.allow_natural_key_rename
        self.allow_natural_key_rename = allow_natural_key_rename

    # ============================================================
    # Helpers
    # ============================================================

    @staticmethod
    def _coerce(model_cls: Type[ModelT], payload: Union[ModelT, Mapping[str, Any]]) -> ModelT:
        """Accept either a payload model or a raw mapping."""
        if isinstance(payload, model_cls):
            return payload
        try:
            return model_cls.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid {model_cls.__name__}: {e}")

    @staticmethod
    def _patch(payload: BaseModel) -> dict:
        return payload.model_dump(by_alias=True, exclude_unset=True, mode="json")

    async def _get_row(self, table: TableGateway, row_id: RowId, entity: str) -> Record:
        row = await table.select_one_where({"id": row_id})
        if row is None:
            raise NotFoundError(f"{entity} {row_id} not found")
        return row

    async def _require_key(self, table: TableGateway, column: str, key: str) -> Record:
        row = await table.select_one_where({column: key})
        if row is None:
            raise NotFoundError(f"{column} '{key}' not found")
        return row

    async def _ensure_key_available(self, table: TableGateway, column: str, key: str) -> None:
        if await table.select_one_where({column: key}) is not None:
            raise DuplicateKeyError(f"{column} '{key}' already exists")

    def _check_rename_allowed(self, entity: str) -> None:
        if not self.allow_natural_key_rename:
            raise ValidationError(
                f"Renaming a {entity} is disabled; its children reference it by name"
            )

    @staticmethod
    def _reject_cleared_key(patch: dict, column: str) -> None:
        if column in patch and patch[column] is None:
            raise ValidationError(f"{column} is required and cannot be cleared")

    @contextmanager
    def _cascade(self, entity: str, row_id: RowId) -> Iterator[CascadeDeleteTracker]:
        tracker = CascadeDeleteTracker(entity, row_id)
        try:
            yield tracker
        except Exception as e:
            failed_at = tracker.fail()
            if isinstance(e, HierarchyError):
                e.failed_state = failed_at
            logger.error(f"Delete {entity} {row_id} failed during {failed_at.value}: {e}")
            raise

    # ============================================================
    # Recompute from children
    # ============================================================

    async def recompute_block(self, block_key: str) -> BlockAggregate:
        """
        Rewrite a Block's aggregate from the tasks currently under it.

        Args:
            block_key: Natural key of the block

        Returns:
            The aggregate that was persisted
        """
        rows = await self.gateway.tasks.select_where({"FK_Block": block_key})
        aggregate = aggregate_from_tasks([Task.model_validate(row) for row in rows])
        await self.gateway.blocks.update({"Block": block_key}, aggregate.to_patch())
        logger.debug(f"Recomputed block '{block_key}': {aggregate.to_patch()}")
        return aggregate

    async def recompute_phase(self, phase_key: str) -> PhaseAggregate:
        """
        Rewrite a Phase's aggregate from the blocks currently under it.

        Args:
            phase_key: Natural key of the phase

        Returns:
            The aggregate that was persisted
        """
        rows = await self.gateway.blocks.select_where({"FK_Phase": phase_key})
        aggregate = aggregate_from_blocks([Block.model_validate(row) for row in rows])
        await self.gateway.phases.update({"Phase": phase_key}, aggregate.to_patch())
        logger.debug(f"Recomputed phase '{phase_key}': {aggregate.to_patch()}")
        return aggregate

    async def _cascade_from_block(self, block_key: str) -> None:
        """Recompute a block, then the phase that owns it."""
        await self.recompute_block(block_key)
        block = await self._require_key(self.gateway.blocks, "Block", block_key)
        if block.get("FK_Phase"):
            await self.recompute_phase(block["FK_Phase"])

    async def recompute_all(self) -> RecomputeSummary:
        """
        Repair pass over the whole tree.

        Task densities first, then every block from its tasks, then every phase
        from its blocks, so each level reads already-repaired children.

        Returns:
            Number of rows rewritten per level
        """
        logger.info("Recomputing all aggregates")
        summary = RecomputeSummary()

        for row in await self.gateway.tasks.select_where({}):
            task = Task.model_validate(row)
            await self.gateway.tasks.update(
                {"id": task.id}, {"Density": density(task.trees, task.area)}
            )
            summary.tasks += 1

        for row in await self.gateway.blocks.select_where({}):
            await self.recompute_block(row["Block"])
            summary.blocks += 1

        for row in await self.gateway.phases.select_where({}):
            await self.recompute_phase(row["Phase"])
            summary.phases += 1

        logger.info(
            f"Recomputed {summary.tasks} tasks, {summary.blocks} blocks, {summary.phases} phases"
        )
        return summary

    # ============================================================
    # Create
    # ============================================================

    async def create_phase(self, phase: Union[PhaseCreate, Mapping[str, Any]]) -> Phase:
        """
        Create a standalone Phase with zero aggregates.

        Raises:
            ValidationError: If the payload is invalid
            DuplicateKeyError: If the Phase key is taken
        """
        payload = self._coerce(PhaseCreate, phase)
        logger.info(f"Creating phase '{payload.phase}'")
        await self._ensure_key_available(self.gateway.phases, "Phase", payload.phase)

        record = payload.model_dump(by_alias=True, mode="json")
        record.update(aggregate_from_blocks([]).to_patch())
        created = await self.gateway.phases.insert(record)
        return Phase.model_validate(created)

    async def create_block(self, block: Union[BlockCreate, Mapping[str, Any]]) -> Block:
        """
        Create a Block under an existing Phase and recompute that Phase.

        Args:
            block: Block key, owning phase key and optional planting date

        Returns:
            The stored block

        Raises:
            ValidationError: If the payload is invalid
            DuplicateKeyError: If the Block key is taken
            NotFoundError: If FK_Phase does not resolve to a phase
            StoreError: If a gateway call fails
        """
        payload = self._coerce(BlockCreate, block)
        logger.info(f"Creating block '{payload.block}' under phase '{payload.fk_phase}'")
        await self._ensure_key_available(self.gateway.blocks, "Block", payload.block)
        await self._require_key(self.gateway.phases, "Phase", payload.fk_phase)

        record = payload.model_dump(by_alias=True, mode="json")
        record.update(aggregate_from_tasks([]).to_patch())
        created = await self.gateway.blocks.insert(record)

        await self.recompute_phase(payload.fk_phase)
        return Block.model_validate(created)

    async def create_task(self, task: Union[TaskCreate, Mapping[str, Any]]) -> Task:
        """
        Create a Task and recompute its Block and that Block's Phase.

        The task's own Density is computed before insertion.

        Args:
            task: Task key, optional Area/Trees and owning block key

        Returns:
            The stored task

        Raises:
            ValidationError: If the payload is invalid
            DuplicateKeyError: If the Task key is taken
            NotFoundError: If FK_Block does not resolve to a block
            StoreError: If a gateway call fails
        """
        payload = self._coerce(TaskCreate, task)
        logger.info(f"Creating task '{payload.task}' under block '{payload.fk_block}'")
        await self._ensure_key_available(self.gateway.tasks, "Task", payload.task)
        if payload.fk_block:
            await self._require_key(self.gateway.blocks, "Block", payload.fk_block)

        record = payload.model_dump(by_alias=True, mode="json")
        record["Density"] = density(payload.trees, payload.area)
        created = await self.gateway.tasks.insert(record)

        if payload.fk_block:
            await self._cascade_from_block(payload.fk_block)
        return Task.model_validate(created)

    # ============================================================
    # Update
    # ============================================================

    async def update_task(
        self,
        task_id: RowId,
        updates: Union[TaskUpdate, Mapping[str, Any]],
    ) -> Task:
        """
        Update a Task and recompute its Block and that Block's Phase.

        When Area or Trees change, Density is recomputed from the merged values.
        When FK_Block changes, both the old and the new block are recomputed.

        Args:
            task_id: Row id of the task
            updates: Fields to change

        Returns:
            The task with the update applied

        Raises:
            NotFoundError: If the task or the new FK_Block does not exist
            DuplicateKeyError: If the new Task key is taken
            ValidationError: If the payload is invalid
            StoreError: If a gateway call fails
        """
        patch = self._patch(self._coerce(TaskUpdate, updates))
        current = Task.model_validate(await self._get_row(self.gateway.tasks, task_id, "Task"))
        logger.info(f"Updating task {task_id} ('{current.task}'): {sorted(patch)}")
        if not patch:
            return current

        self._reject_cleared_key(patch, "Task")
        self._reject_cleared_key(patch, "FK_Block")
        if "Task" in patch and patch["Task"] != current.task:
            await self._ensure_key_available(self.gateway.tasks, "Task", patch["Task"])

        new_block = patch.get("FK_Block", current.fk_block)
        if new_block and new_block != current.fk_block:
            await self._require_key(self.gateway.blocks, "Block", new_block)

        if "Area" in patch or "Trees" in patch:
            area = patch.get("Area", current.area)
            trees = patch.get("Trees", current.trees)
            patch["Density"] = density(trees, area)

        await self.gateway.tasks.update({"id": task_id}, patch)

        for block_key in _distinct_keys(current.fk_block, new_block):
            await self._cascade_from_block(block_key)
        return Task.model_validate({**current.model_dump(by_alias=True), **patch})

    async def update_block(
        self,
        block_id: RowId,
        updates: Union[BlockUpdate, Mapping[str, Any]],
    ) -> Block:
        """
        Update a Block and recompute its Phase.

        A change of the Block key repoints the block's tasks before the row is
        renamed. A change of FK_Phase recomputes both the old and the new phase.

        Args:
            block_id: Row id of the block
            updates: Fields to change

        Returns:
            The block with the update applied

        Raises:
            NotFoundError: If the block or the new FK_Phase does not exist
            DuplicateKeyError: If the new Block key is taken
            ValidationError: If the payload is invalid or renames are disabled
            StoreError: If a gateway call fails
        """
        patch = self._patch(self._coerce(BlockUpdate, updates))
        current = Block.model_validate(await self._get_row(self.gateway.blocks, block_id, "Block"))
        logger.info(f"Updating block {block_id} ('{current.block}'): {sorted(patch)}")
        if not patch:
            return current

        self._reject_cleared_key(patch, "Block")
        self._reject_cleared_key(patch, "FK_Phase")
        new_key = patch.get("Block", current.block)
        renaming = new_key != current.block

        new_phase = patch.get("FK_Phase", current.fk_phase)
        if new_phase and new_phase != current.fk_phase:
            await self._require_key(self.gateway.phases, "Phase", new_phase)

        if renaming:
            self._check_rename_allowed("Block")
            await self._ensure_key_available(self.gateway.blocks, "Block", new_key)
            await self.gateway.tasks.update({"FK_Block": current.block}, {"FK_Block": new_key})

        await self.gateway.blocks.update({"id": block_id}, patch)

        if renaming:
            await self.recompute_block(new_key)
        for phase_key in _distinct_keys(current.fk_phase, new_phase):
            await self.recompute_phase(phase_key)
        return Block.model_validate({**current.model_dump(by_alias=True), **patch})

    async def update_phase(
        self,
        phase_id: RowId,
        updates: Union[PhaseUpdate, Mapping[str, Any]],
    ) -> Phase:
        """
        Update a Phase. Phase is the root, so nothing above it is recomputed.

        A change of the Phase key repoints the phase's blocks before the row is
        renamed, then recomputes the phase under its new key.

        Raises:
            NotFoundError: If the phase does not exist
            DuplicateKeyError: If the new Phase key is taken
            ValidationError: If the payload is invalid or renames are disabled
            StoreError: If a gateway call fails
        """
        patch = self._patch(self._coerce(PhaseUpdate, updates))
        current = Phase.model_validate(await self._get_row(self.gateway.phases, phase_id, "Phase"))
        logger.info(f"Updating phase {phase_id} ('{current.phase}'): {sorted(patch)}")
        if not patch:
            return current

        self._reject_cleared_key(patch, "Phase")
        new_key = patch.get("Phase", current.phase)
        renaming = new_key != current.phase

        if renaming:
            self._check_rename_allowed("Phase")
            await self._ensure_key_available(self.gateway.phases, "Phase", new_key)
            await self.gateway.blocks.update({"FK_Phase": current.phase}, {"FK_Phase": new_key})

        await self.gateway.phases.update({"id": phase_id}, patch)

        if renaming:
            await self.recompute_phase(new_key)
        return Phase.model_validate({**current.model_dump(by_alias=True), **patch})

    async def rename_phase(self, phase_id: RowId, new_key: str) -> Phase:
        """Rename a Phase, repointing its blocks to the new key."""
        return await self.update_phase(phase_id, {"Phase": new_key})

    async def rename_block(self, block_id: RowId, new_key: str) -> Block:
        """Rename a Block, repointing its tasks to the new key."""
        return await self.update_block(block_id, {"Block": new_key})

    # ============================================================
    # Delete
    # ============================================================

    async def delete_task(self, task_id: RowId) -> CascadeDeleteResult:
        """
        Delete a Task and recompute its Block and that Block's Phase.

        Raises:
            NotFoundError: If the task does not exist
            StoreError: If a gateway call fails
        """
        logger.info(f"Deleting task {task_id}")
        with self._cascade("Task", task_id) as tracker:
            tracker.advance(CascadeState.CHILD_LOOKUP)
            task = Task.model_validate(await self._get_row(self.gateway.tasks, task_id, "Task"))
            tracker.natural_key = task.task

            tracker.advance(CascadeState.SELF_DELETE)
            await self.gateway.tasks.delete({"id": task_id})

            if task.fk_block:
                tracker.advance(CascadeState.PARENT_RECOMPUTE)
                await self._cascade_from_block(task.fk_block)
            tracker.advance(CascadeState.IDLE)
        return tracker.result()

    async def delete_block(self, block_id: RowId) -> CascadeDeleteResult:
        """
        Delete a Block with all of its tasks, then recompute its Phase.

        Raises:
            NotFoundError: If the block does not exist
            StoreError: If a gateway call fails
        """
        logger.info(f"Deleting block {block_id}")
        with self._cascade("Block", block_id) as tracker:
            tracker.advance(CascadeState.CHILD_LOOKUP)
            block = Block.model_validate(await self._get_row(self.gateway.blocks, block_id, "Block"))
            tracker.natural_key = block.block

            tracker.advance(CascadeState.CHILD_DELETE)
            await self.gateway.tasks.delete({"FK_Block": block.block})

            tracker.advance(CascadeState.SELF_DELETE)
            await self.gateway.blocks.delete({"id": block_id})
            tracker.removed_blocks = [block.block]

            if block.fk_phase:
                tracker.advance(CascadeState.PARENT_RECOMPUTE)
                await self.recompute_phase(block.fk_phase)
            tracker.advance(CascadeState.IDLE)
        return tracker.result()

    async def delete_phase(self, phase_id: RowId) -> CascadeDeleteResult:
        """
        Delete a Phase together with every Block and Task beneath it.

        Tasks go first, then blocks, then the phase row itself.

        Raises:
            NotFoundError: If the phase does not exist
            StoreError: If a gateway call fails
        """
        logger.info(f"Deleting phase {phase_id}")
        with self._cascade("Phase", phase_id) as tracker:
            tracker.advance(CascadeState.CHILD_LOOKUP)
            phase = Phase.model_validate(await self._get_row(self.gateway.phases, phase_id, "Phase"))
            tracker.natural_key = phase.phase
            blocks = await self.gateway.blocks.select_where({"FK_Phase": phase.phase})
            block_keys = [row["Block"] for row in blocks]

            tracker.advance(CascadeState.CHILD_DELETE)
            if block_keys:
                await self.gateway.tasks.delete_where_in("FK_Block", block_keys)
            await self.gateway.blocks.delete({"FK_Phase": phase.phase})
            tracker.removed_blocks = block_keys

            tracker.advance(CascadeState.SELF_DELETE)
            await self.gateway.phases.delete({"id": phase_id})
            tracker.advance(CascadeState.IDLE)
        return tracker.result()
