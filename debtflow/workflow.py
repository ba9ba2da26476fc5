"""Guided workflow orchestration: Import -> Configuration -> Analytics."""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional

from .contracts import (
    NAMESPACE_KEYS,
    STEP_ORDER,
    WORKFLOW_STEPS,
    StepId,
    WorkflowState,
    WorkflowStep,
    is_step_complete,
    step_definition,
)
from .errors import PersistenceError, StepDataError, UnknownStepError
from .navigation import Navigator, RecordingNavigator
from .persistence import StateStore

logger = logging.getLogger(__name__)

DEFAULT_STATE_KEY = "workflow-state"


class WorkflowOrchestrator:
    """Sequences the three workflow stages and persists progress.

    Completion and accessibility are derived from ``step_data`` on every
    read. ``completed_steps`` is informational only and is never consulted
    for navigation.
    """

    def __init__(
        self,
        store: StateStore,
        navigator: Optional[Navigator] = None,
        state: Optional[WorkflowState] = None,
        state_key: str = DEFAULT_STATE_KEY,
    ) -> None:
        self._store = store
        self._navigator = navigator or RecordingNavigator()
        self._state = state or WorkflowState()
        self._state_key = state_key

    @classmethod
    async def open(
        cls,
        store: StateStore,
        navigator: Optional[Navigator] = None,
        state_key: str = DEFAULT_STATE_KEY,
    ) -> "WorkflowOrchestrator":
        """Create an orchestrator hydrated from ``store``.

        A missing or corrupt entry falls back to the default state.
        """
        state = await cls._load_state(store, state_key)
        return cls(store, navigator=navigator, state=state, state_key=state_key)

    @staticmethod
    async def _load_state(store: StateStore, state_key: str) -> WorkflowState:
        saved = await store.get_item(state_key)
        if saved is None:
            return WorkflowState()
        try:
            return WorkflowState.from_json(saved)
        except PersistenceError as e:
            logger.warning(f"Failed to parse saved workflow state, using defaults: {e}")
            return WorkflowState()

    # ------------------------------------------------------------------
    # Derived views
    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def steps(self) -> List[WorkflowStep]:
        return [
            WorkflowStep(
                **definition.model_dump(),
                is_complete=self.is_step_complete(definition.id),
                is_active=definition.id == self._state.current_step_id,
                is_accessible=self.is_step_accessible(definition.id),
            )
            for definition in WORKFLOW_STEPS
        ]

    @property
    def current_step(self) -> WorkflowStep:
        return next(step for step in self.steps if step.is_active)

    def is_step_complete(self, step_id: str | StepId) -> bool:
        return is_step_complete(StepId.parse(step_id), self._state.step_data)

    def is_step_accessible(self, step_id: str | StepId) -> bool:
        """First step always; later steps once every earlier step is complete."""
        index = STEP_ORDER.index(StepId.parse(step_id))
        return all(self.is_step_complete(prior) for prior in STEP_ORDER[:index])

    def get_progress(self) -> int:
        """Percentage of steps whose completion predicate holds."""
        completed = sum(1 for step in STEP_ORDER if self.is_step_complete(step))
        return round(completed / len(STEP_ORDER) * 100)

    # ------------------------------------------------------------------
    # Navigation
    async def go_to_step(self, step_id: str | StepId) -> bool:
        """Route to ``step_id`` if it is accessible.

        Returns ``True`` when navigation happened.
        """
        try:
            target = StepId.parse(step_id)
        except UnknownStepError:
            logger.debug(f"Ignoring navigation to unknown step {step_id!r}")
            return False
        if not self.is_step_accessible(target):
            logger.info(f"Step {target.value} is not accessible yet")
            return False

        path = step_definition(target).target_path
        self._navigator.navigate(path)
        await self.sync_with_path(path)
        return True

    async def next_step(self) -> bool:
        index = STEP_ORDER.index(self._state.current_step_id)
        if index >= len(STEP_ORDER) - 1:
            return False
        return await self.go_to_step(STEP_ORDER[index + 1])

    async def previous_step(self) -> bool:
        index = STEP_ORDER.index(self._state.current_step_id)
        if index == 0:
            return False
        return await self.go_to_step(STEP_ORDER[index - 1])

    async def sync_with_path(self, path: str) -> None:
        """Make the step owning ``path`` the current one.

        Called after a route change; paths that belong to no step are ignored.
        """
        matching = next((s for s in WORKFLOW_STEPS if s.target_path == path), None)
        if matching is None or matching.id == self._state.current_step_id:
            return
        self._state.current_step_id = matching.id
        logger.info(f"Current workflow step is now {matching.id.value}")
        await self._persist()

    # ------------------------------------------------------------------
    # Mutations
    async def mark_step_complete(
        self, step_id: str | StepId, data: Optional[Dict[str, Any]] = None
    ) -> None:
        """Record ``step_id`` as completed and merge ``data`` into the root.

        Raises:
            StepDataError: ``data`` names a per-step history entry.
        """
        step = StepId.parse(step_id)
        if data:
            _reject_reserved_keys(data)
        self._state.completed_steps.add(step)
        if data:
            self._state.step_data.update(copy.deepcopy(data))
        logger.info(f"Marked workflow step {step.value} complete")
        await self._persist()

    async def update_step_data(
        self, step_id: str | StepId, data: Dict[str, Any]
    ) -> None:
        """Merge ``data`` into the step's history entry and into the root.

        Keys naming a history entry are rejected so the flattened write can
        never overwrite one.
        """
        step = StepId.parse(step_id)
        _reject_reserved_keys(data)

        patch = copy.deepcopy(data)
        existing = self._state.step_data.get(step.namespace_key)
        history = dict(existing) if isinstance(existing, dict) else {}
        history.update(patch)
        self._state.step_data[step.namespace_key] = history
        self._state.step_data.update(copy.deepcopy(patch))
        logger.debug(f"Updated step data for {step.value}: {sorted(patch)}")
        await self._persist()

    async def reset_workflow(self) -> None:
        self._state = WorkflowState()
        await self._store.remove_item(self._state_key)
        logger.info("Workflow reset to defaults")

    # ------------------------------------------------------------------
    async def _persist(self) -> None:
        await self._store.set_item(self._state_key, self._state.to_json())


def _reject_reserved_keys(data: Dict[str, Any]) -> None:
    clashing = sorted(NAMESPACE_KEYS.intersection(data))
    if clashing:
        raise StepDataError(f"Step data keys {clashing} are reserved for per-step history")
