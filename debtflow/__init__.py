"""debtflow: guided import workflow and CSV upload pipeline for technical debt analytics."""

from .client import AnalyticsClient
from .contracts import StepId, UploadReport, ValidationResult, WorkflowState, WorkflowStep
from .importer import ImportSession
from .notifications import NotificationBridge
from .persistence import get_store
from .upload import CandidateFile, UploadPipeline, UploadStatus, validate_file
from .workflow import WorkflowOrchestrator

__version__ = "0.1.0"
__all__ = [
    "AnalyticsClient",
    "CandidateFile",
    "ImportSession",
    "NotificationBridge",
    "StepId",
    "UploadPipeline",
    "UploadReport",
    "UploadStatus",
    "ValidationResult",
    "WorkflowOrchestrator",
    "WorkflowState",
    "WorkflowStep",
    "get_store",
    "validate_file",
]
