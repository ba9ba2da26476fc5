"""Import stage glue between upload pipelines and the workflow orchestrator."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Set

from .config import UploadSettings
from .contracts import StepId, UploadReport
from .notifications import NotificationAction, NotificationBridge
from .upload.pipeline import UploadPipeline, UploadTransport, UploadType
from .workflow import WorkflowOrchestrator

logger = logging.getLogger(__name__)


class ImportSession:
    """Owns one pipeline per upload type and reports completions upward.

    A finished upload sets ``<type>Uploaded``, ``<type>UploadDate`` and
    ``<type>RecordCount`` on the import step; once both uploads are in, the
    import step's completion predicate holds and the success notification's
    "Next Step" action moves the workflow forward.
    """

    def __init__(
        self,
        orchestrator: WorkflowOrchestrator,
        transport: UploadTransport,
        notifications: Optional[NotificationBridge] = None,
        settings: Optional[UploadSettings] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.notifications = notifications
        self._tasks: Set[asyncio.Task] = set()
        self.pipelines: Dict[str, UploadPipeline] = {}
        for upload_type in ("tickets", "usage"):
            pipeline = UploadPipeline(
                upload_type,
                transport,
                settings=settings,
                notifications=notifications,
                on_complete=self.record_upload,
            )
            pipeline.success_action = NotificationAction(
                label="Next Step", on_click=self._schedule_next_step
            )
            self.pipelines[upload_type] = pipeline

    def pipeline(self, upload_type: UploadType) -> UploadPipeline:
        return self.pipelines[upload_type]

    async def record_upload(self, report: UploadReport) -> None:
        """Merge a completion report into the import step's data."""
        prefix = report.upload_type
        await self.orchestrator.update_step_data(
            StepId.IMPORT,
            {
                f"{prefix}Uploaded": True,
                f"{prefix}UploadDate": report.completed_at,
                f"{prefix}RecordCount": report.validation.valid_rows,
            },
        )
        logger.info(
            f"Recorded {prefix} upload of {report.file_name} "
            f"({report.validation.valid_rows} records)"
        )

    async def advance_if_ready(self) -> bool:
        """Move to the next step when the import step is complete."""
        if not self.orchestrator.is_step_complete(StepId.IMPORT):
            return False
        return await self.orchestrator.next_step()

    def _schedule_next_step(self) -> None:
        task = asyncio.get_running_loop().create_task(self.advance_if_ready())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
