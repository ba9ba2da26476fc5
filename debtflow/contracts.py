"""Core data contracts for the guided workflow."""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import PersistenceError, UnknownStepError

logger = logging.getLogger(__name__)


class StepId(str, Enum):
    """The three fixed stages of the guided workflow, in order."""

    IMPORT = "import"
    CONFIGURATION = "configuration"
    ANALYTICS = "analytics"

    @classmethod
    def parse(cls, value: "str | StepId") -> "StepId":
        try:
            return cls(value)
        except ValueError:
            raise UnknownStepError(value) from None

    @property
    def namespace_key(self) -> str:
        """Key under which per-step history is kept in ``step_data``."""
        return f"{self.value}Data"


class WorkflowStepDefinition(BaseModel):
    """Static description of one workflow stage."""

    model_config = ConfigDict(frozen=True)

    id: StepId
    title: str
    description: str
    target_path: str


class WorkflowStep(WorkflowStepDefinition):
    """A step definition together with its derived status."""

    is_complete: bool = False
    is_active: bool = False
    is_accessible: bool = False


WORKFLOW_STEPS: tuple[WorkflowStepDefinition, ...] = (
    WorkflowStepDefinition(
        id=StepId.IMPORT,
        title="Data Import",
        description="Upload tickets & usage data",
        target_path="/import",
    ),
    WorkflowStepDefinition(
        id=StepId.CONFIGURATION,
        title="Configuration",
        description="Set up mappings & thresholds",
        target_path="/configuration",
    ),
    WorkflowStepDefinition(
        id=StepId.ANALYTICS,
        title="Analytics",
        description="Review insights & debt analysis",
        target_path="/analytics",
    ),
)

STEP_ORDER: tuple[StepId, ...] = tuple(step.id for step in WORKFLOW_STEPS)
NAMESPACE_KEYS: frozenset[str] = frozenset(step.namespace_key for step in StepId)


def step_definition(step_id: "str | StepId") -> WorkflowStepDefinition:
    """Return the static definition for ``step_id``."""
    return WORKFLOW_STEPS[STEP_ORDER.index(StepId.parse(step_id))]


def is_step_complete(step_id: StepId, step_data: Dict[str, Any]) -> bool:
    """Evaluate the completion predicate of ``step_id`` against ``step_data``.

    Flags must be literally ``True``; truthy payload values do not count.
    """
    if step_id is StepId.IMPORT:
        return (
            step_data.get("ticketsUploaded") is True
            and step_data.get("usageUploaded") is True
        )
    if step_id is StepId.CONFIGURATION:
        return (
            step_data.get("mappingsConfigured") is True
            and step_data.get("thresholdsConfigured") is True
        )
    if step_id is StepId.ANALYTICS:
        return step_data.get("analyticsReviewed") is True
    raise UnknownStepError(step_id)


class WorkflowState(BaseModel):
    """Mutable progress of one workflow session.

    Serialized with the camelCase keys the dashboard has always stored:
    ``{"currentStepId", "completedSteps", "stepData"}``.
    """

    model_config = ConfigDict(populate_by_name=True)

    current_step_id: StepId = Field(default=StepId.IMPORT, alias="currentStepId")
    completed_steps: Set[StepId] = Field(default_factory=set, alias="completedSteps")
    step_data: Dict[str, Any] = Field(default_factory=dict, alias="stepData")

    @field_validator("step_data")
    @classmethod
    def history_entries_are_objects(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        for key in NAMESPACE_KEYS.intersection(value):
            if not isinstance(value[key], dict):
                raise ValueError(f"{key} must be an object")
        return value

    def to_json(self) -> str:
        """Serialize state; completed steps are written in workflow order."""
        return json.dumps(
            {
                "currentStepId": self.current_step_id.value,
                "completedSteps": [
                    step.value for step in STEP_ORDER if step in self.completed_steps
                ],
                "stepData": self.step_data,
            }
        )

    @classmethod
    def from_json(cls, data: str) -> "WorkflowState":
        """Deserialize state, raising ``PersistenceError`` on any malformed blob."""
        try:
            raw = json.loads(data)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Unparsable workflow state: {exc}") from exc
        if not isinstance(raw, dict):
            raise PersistenceError("Workflow state must be a JSON object")
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise PersistenceError(f"Invalid workflow state: {exc}") from exc


class ValidationResult(BaseModel):
    """Outcome of server-side row validation for a finished upload."""

    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    row_count: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0


class UploadReport(BaseModel):
    """Completion payload a finished upload reports upward."""

    upload_type: str
    organization: Optional[str] = None
    file_name: str
    inserted: int = 0
    validation: ValidationResult
    data: Dict[str, Any] = Field(default_factory=dict)
    completed_at: str
