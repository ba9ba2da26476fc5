"""Workflow orchestrator tests."""

import itertools
import json

import pytest

from debtflow.contracts import StepId, WorkflowState
from debtflow.errors import StepDataError, UnknownStepError
from debtflow.navigation import RecordingNavigator
from debtflow.persistence import InMemoryStateStore
from debtflow.workflow import DEFAULT_STATE_KEY, WorkflowOrchestrator

IMPORT_DONE = {"ticketsUploaded": True, "usageUploaded": True}
CONFIG_DONE = {"mappingsConfigured": True, "thresholdsConfigured": True}


async def _orchestrator(store=None, navigator=None) -> WorkflowOrchestrator:
    return await WorkflowOrchestrator.open(
        store or InMemoryStateStore(), navigator or RecordingNavigator()
    )


def _accessibility(orchestrator):
    return {step.id: step.is_accessible for step in orchestrator.steps}


@pytest.mark.asyncio
async def test_initial_state_only_import_accessible():
    orchestrator = await _orchestrator()

    assert orchestrator.state.current_step_id is StepId.IMPORT
    assert _accessibility(orchestrator) == {
        StepId.IMPORT: True,
        StepId.CONFIGURATION: False,
        StepId.ANALYTICS: False,
    }
    assert orchestrator.current_step.id is StepId.IMPORT
    assert orchestrator.get_progress() == 0


@pytest.mark.asyncio
async def test_mark_import_complete_unlocks_configuration_only():
    orchestrator = await _orchestrator()

    await orchestrator.mark_step_complete("import", IMPORT_DONE)

    access = _accessibility(orchestrator)
    assert access[StepId.CONFIGURATION] is True
    assert access[StepId.ANALYTICS] is False
    assert orchestrator.state.completed_steps == {StepId.IMPORT}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "import_done,config_done", list(itertools.product([False, True], repeat=2))
)
async def test_accessibility_for_every_predecessor_combination(import_done, config_done):
    data = {}
    if import_done:
        data.update(IMPORT_DONE)
    if config_done:
        data.update(CONFIG_DONE)
    orchestrator = WorkflowOrchestrator(
        InMemoryStateStore(), state=WorkflowState(step_data=data)
    )

    access = _accessibility(orchestrator)
    assert access[StepId.IMPORT] is True
    assert access[StepId.CONFIGURATION] is import_done
    assert access[StepId.ANALYTICS] is (import_done and config_done)


@pytest.mark.asyncio
async def test_completed_steps_do_not_drive_accessibility():
    orchestrator = await _orchestrator()

    await orchestrator.mark_step_complete("import")

    assert StepId.IMPORT in orchestrator.state.completed_steps
    assert orchestrator.is_step_complete("import") is False
    assert orchestrator.is_step_accessible("configuration") is False


@pytest.mark.asyncio
async def test_predicate_requires_literal_true():
    orchestrator = WorkflowOrchestrator(
        InMemoryStateStore(),
        state=WorkflowState(step_data={"ticketsUploaded": 1, "usageUploaded": "yes"}),
    )
    assert orchestrator.is_step_complete(StepId.IMPORT) is False


@pytest.mark.asyncio
async def test_go_to_step_blocked_until_accessible():
    navigator = RecordingNavigator()
    orchestrator = await _orchestrator(navigator=navigator)

    assert await orchestrator.go_to_step("analytics") is False
    assert navigator.history == []
    assert orchestrator.state.current_step_id is StepId.IMPORT

    await orchestrator.update_step_data("import", IMPORT_DONE)
    assert await orchestrator.go_to_step("configuration") is True
    assert navigator.history == ["/configuration"]
    assert orchestrator.state.current_step_id is StepId.CONFIGURATION
    assert orchestrator.state.completed_steps == set()


@pytest.mark.asyncio
async def test_go_to_unknown_step_is_noop():
    navigator = RecordingNavigator()
    orchestrator = await _orchestrator(navigator=navigator)

    assert await orchestrator.go_to_step("reports") is False
    assert navigator.history == []


@pytest.mark.asyncio
async def test_next_and_previous_step_respect_boundaries():
    navigator = RecordingNavigator()
    orchestrator = await _orchestrator(navigator=navigator)

    assert await orchestrator.previous_step() is False
    assert await orchestrator.next_step() is False

    await orchestrator.update_step_data("import", IMPORT_DONE)
    await orchestrator.update_step_data("configuration", CONFIG_DONE)

    assert await orchestrator.next_step() is True
    assert await orchestrator.next_step() is True
    assert orchestrator.state.current_step_id is StepId.ANALYTICS
    assert await orchestrator.next_step() is False

    assert await orchestrator.previous_step() is True
    assert orchestrator.state.current_step_id is StepId.CONFIGURATION
    assert navigator.history == ["/configuration", "/analytics", "/configuration"]


@pytest.mark.asyncio
async def test_update_step_data_writes_namespaced_and_flat():
    orchestrator = await _orchestrator()

    await orchestrator.update_step_data("import", {"ticketsUploaded": True, "ticketsRecordCount": 120})
    await orchestrator.update_step_data("import", {"usageUploaded": True})

    data = orchestrator.state.step_data
    assert data["ticketsUploaded"] is True
    assert data["usageUploaded"] is True
    assert data["importData"] == {
        "ticketsUploaded": True,
        "ticketsRecordCount": 120,
        "usageUploaded": True,
    }
    assert orchestrator.is_step_complete("import") is True


@pytest.mark.asyncio
async def test_update_step_data_rejects_namespace_collisions():
    orchestrator = await _orchestrator()

    with pytest.raises(StepDataError):
        await orchestrator.update_step_data("configuration", {"importData": {}})
    assert orchestrator.state.step_data == {}


@pytest.mark.asyncio
async def test_mark_step_complete_rejects_namespace_collisions():
    store = InMemoryStateStore()
    orchestrator = await _orchestrator(store)

    with pytest.raises(StepDataError):
        await orchestrator.mark_step_complete("import", {"importData": True})

    assert orchestrator.state.step_data == {}
    assert orchestrator.state.completed_steps == set()
    assert await store.get_item(DEFAULT_STATE_KEY) is None

    await orchestrator.update_step_data("import", {"ticketsUploaded": True})
    assert orchestrator.state.step_data["importData"] == {"ticketsUploaded": True}


@pytest.mark.asyncio
async def test_update_step_data_replaces_non_object_history():
    orchestrator = await _orchestrator()
    orchestrator.state.step_data["importData"] = True

    await orchestrator.update_step_data("import", {"usageUploaded": True})

    assert orchestrator.state.step_data["importData"] == {"usageUploaded": True}


@pytest.mark.asyncio
async def test_unknown_step_mutation_raises():
    orchestrator = await _orchestrator()
    with pytest.raises(UnknownStepError):
        await orchestrator.mark_step_complete("reports")


@pytest.mark.asyncio
async def test_get_progress_counts_predicate_complete_steps():
    orchestrator = await _orchestrator()

    await orchestrator.update_step_data("import", IMPORT_DONE)
    assert orchestrator.get_progress() == 33

    await orchestrator.update_step_data("configuration", CONFIG_DONE)
    assert orchestrator.get_progress() == 67

    await orchestrator.mark_step_complete("analytics", {"analyticsReviewed": True})
    assert orchestrator.get_progress() == 100


@pytest.mark.asyncio
async def test_every_mutation_is_persisted():
    store = InMemoryStateStore()
    orchestrator = await _orchestrator(store)

    await orchestrator.mark_step_complete("import", IMPORT_DONE)
    saved = json.loads(await store.get_item(DEFAULT_STATE_KEY))
    assert saved == {
        "currentStepId": "import",
        "completedSteps": ["import"],
        "stepData": IMPORT_DONE,
    }

    await orchestrator.go_to_step("configuration")
    saved = json.loads(await store.get_item(DEFAULT_STATE_KEY))
    assert saved["currentStepId"] == "configuration"


@pytest.mark.asyncio
async def test_state_survives_reopen():
    store = InMemoryStateStore()
    first = await _orchestrator(store)
    await first.mark_step_complete("import", IMPORT_DONE)
    await first.mark_step_complete("configuration", CONFIG_DONE)
    await first.go_to_step("analytics")

    second = await _orchestrator(store)
    assert second.state.current_step_id is StepId.ANALYTICS
    assert second.state.completed_steps == {StepId.IMPORT, StepId.CONFIGURATION}
    assert second.is_step_accessible("analytics") is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "blob",
    [
        "not json",
        "[1, 2, 3]",
        '{"currentStepId": "reports"}',
        '{"currentStepId": "import", "completedSteps": ["bogus"]}',
        '{"stepData": "nope"}',
        '{"stepData": {"importData": true}}',
        '{"stepData": {"configurationData": [1]}}',
    ],
)
async def test_corrupt_state_falls_back_to_defaults(blob):
    store = InMemoryStateStore({DEFAULT_STATE_KEY: blob})

    orchestrator = await _orchestrator(store)

    assert orchestrator.state == WorkflowState()


@pytest.mark.asyncio
async def test_reset_workflow_clears_state_and_storage():
    store = InMemoryStateStore()
    orchestrator = await _orchestrator(store)
    await orchestrator.mark_step_complete("import", IMPORT_DONE)
    await orchestrator.go_to_step("configuration")

    await orchestrator.reset_workflow()

    assert orchestrator.state == WorkflowState()
    assert await store.get_item(DEFAULT_STATE_KEY) is None
    assert _accessibility(orchestrator)[StepId.CONFIGURATION] is False


@pytest.mark.asyncio
async def test_sync_with_path_ignores_foreign_paths():
    store = InMemoryStateStore()
    orchestrator = await _orchestrator(store)

    await orchestrator.sync_with_path("/customers")
    assert orchestrator.state.current_step_id is StepId.IMPORT
    assert await store.get_item(DEFAULT_STATE_KEY) is None

    await orchestrator.sync_with_path("/analytics")
    assert orchestrator.state.current_step_id is StepId.ANALYTICS
