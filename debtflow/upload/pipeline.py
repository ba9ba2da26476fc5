"""State machine driving one CSV upload from selection to completion."""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Literal, Optional, Protocol

from pydantic import BaseModel

from ..config import UploadSettings
from ..contracts import UploadReport, ValidationResult
from ..errors import ConflictError, FileValidationError, TransmissionError
from ..notifications import NotificationAction, NotificationBridge
from .conflict import ConflictChecker, ConflictPolicy, ConflictWarning, parse_timestamp
from .progress import ProgressSimulator
from .validator import CandidateFile, validate_file

logger = logging.getLogger(__name__)

UploadType = Literal["tickets", "usage"]

UPLOAD_LABELS: Dict[str, str] = {"tickets": "Support tickets", "usage": "Usage data"}

NO_FILE_SELECTED = "Please select a file first"
NO_ORGANIZATION = "Please select an organization first"
UPLOAD_IN_PROGRESS = "An upload is already in progress"


class UploadStatus(str, Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    VALIDATING = "validating"
    COMPLETE = "complete"
    ERROR = "error"


class UploadSession(BaseModel):
    """Observable state of the current or last upload attempt."""

    upload_type: UploadType
    selected_file: Optional[CandidateFile] = None
    status: UploadStatus = UploadStatus.IDLE
    progress: int = 0
    message: Optional[str] = None
    validation_result: Optional[ValidationResult] = None
    conflict_warning: Optional[ConflictWarning] = None


class UploadTransport(Protocol):
    """Backend calls the pipeline depends on."""

    async def upload_tickets(
        self, file: CandidateFile, organization: Optional[str] = None
    ) -> Dict[str, Any]: ...

    async def upload_usage(
        self, file: CandidateFile, organization: str, force: bool = False
    ) -> Dict[str, Any]: ...

    async def last_upload_date(self, organization: str) -> Optional[datetime]: ...


async def _call(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class UploadPipeline:
    """Drive uploads of one type through validate, transmit and finalize.

    Every transition that follows an ``await`` is checked against the attempt
    generation captured when the upload started. ``reset`` bumps the
    generation, so responses that arrive after a reset are dropped instead of
    resurrecting the session.
    """

    def __init__(
        self,
        upload_type: UploadType,
        transport: UploadTransport,
        settings: Optional[UploadSettings] = None,
        notifications: Optional[NotificationBridge] = None,
        on_complete: Optional[Callable[[UploadReport], Any]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_progress: Optional[Callable[[int, UploadStatus], None]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        if upload_type not in UPLOAD_LABELS:
            raise ValueError(f"Unsupported upload type: {upload_type}")
        self.upload_type = upload_type
        self.settings = settings or UploadSettings()
        self._transport = transport
        self._notifications = notifications
        self.on_complete = on_complete
        self.on_error = on_error
        self.on_progress = on_progress
        self.success_action: Optional[NotificationAction] = None
        self._clock = clock
        self._conflicts = ConflictChecker(
            transport.last_upload_date,
            window_days=self.settings.conflict_window_days,
            clock=clock,
        )
        self._session = UploadSession(upload_type=upload_type)
        self._generation = 0
        self._simulator: Optional[ProgressSimulator] = None
        self._auto_reset: Optional[asyncio.TimerHandle] = None

    @property
    def session(self) -> UploadSession:
        return self._session

    @property
    def conflict_policy(self) -> ConflictPolicy:
        return ConflictPolicy(self.settings.conflict_policy)

    @property
    def busy(self) -> bool:
        return self._session.status in (UploadStatus.UPLOADING, UploadStatus.VALIDATING)

    # ------------------------------------------------------------------
    # Selection
    def select_file(self, file: CandidateFile) -> CandidateFile:
        """Validate ``file`` and make it the session's selected file.

        Raises:
            FileValidationError: The file failed a pre-flight check; the
                session is left unchanged.
        """
        if self.busy:
            raise FileValidationError(UPLOAD_IN_PROGRESS)
        error = validate_file(file, max_file_size=self.settings.max_file_size)
        if error:
            self._report_rejection(error)
            raise FileValidationError(error)

        self._cancel_auto_reset()
        self._session = UploadSession(upload_type=self.upload_type, selected_file=file)
        logger.info(f"Selected {file.name} ({file.size} bytes) for {self.upload_type} upload")
        return file

    async def check_conflict(self, organization: Optional[str]) -> Optional[ConflictWarning]:
        """Return an overwrite warning for usage uploads inside the conflict window."""
        if self.upload_type != "usage" or not organization:
            return None
        return await self._conflicts.check(organization)

    # ------------------------------------------------------------------
    # Upload
    async def start_upload(
        self, organization: Optional[str] = None, force: bool = False
    ) -> Optional[UploadReport]:
        """Upload the selected file and wait for the simulated validation.

        Returns the completion report, or ``None`` when the attempt was reset
        while in flight.

        Raises:
            FileValidationError: No file or, for usage uploads, no organization.
            ConflictError: The upload would overwrite recent usage data and
                the policy requires confirmation, or the server refused it.
            TransmissionError: The request failed; the session is in ``error``.
        """
        if self.busy:
            raise FileValidationError(UPLOAD_IN_PROGRESS)
        file = self._session.selected_file
        if file is None:
            self._report_rejection(NO_FILE_SELECTED)
            raise FileValidationError(NO_FILE_SELECTED)
        if self.upload_type == "usage" and not organization:
            self._report_rejection(NO_ORGANIZATION)
            raise FileValidationError(NO_ORGANIZATION)

        self._cancel_auto_reset()
        self._generation += 1
        generation = self._generation

        if self.upload_type == "usage" and not force:
            warning = await self.check_conflict(organization)
            if generation != self._generation:
                logger.info("Upload was reset during the conflict check; dropping it")
                return None
            self._session.conflict_warning = warning
            if warning is not None:
                self._warn_conflict(warning, organization)
                if self.conflict_policy is ConflictPolicy.CONFIRM:
                    raise ConflictError(warning.message, warning=warning)

        self._transition(UploadStatus.UPLOADING, 0, "Uploading file...")
        self._start_simulator(generation)

        try:
            response = await self._transmit(file, organization, force)
        except ConflictError as e:
            self._stop_simulator()
            if generation != self._generation:
                return None
            self._handle_server_conflict(e, organization)
            raise
        except Exception as e:
            self._stop_simulator()
            if generation != self._generation:
                logger.info(f"Ignoring failure of a reset upload: {e}")
                return None
            self._fail(e)
            if isinstance(e, TransmissionError):
                raise
            raise TransmissionError(str(e) or "Upload failed") from e

        self._stop_simulator()
        if generation != self._generation:
            logger.info("Upload response arrived after reset; dropping it")
            return None

        self._transition(UploadStatus.VALIDATING, 95, "Validating data...")
        await asyncio.sleep(self.settings.validation_delay)
        if generation != self._generation:
            logger.info("Upload was reset during validation; dropping result")
            return None

        report = self._build_report(file, organization, response)
        self._session.validation_result = report.validation
        self._transition(UploadStatus.COMPLETE, 100, "Upload completed successfully!")
        logger.info(
            f"{self.upload_type} upload of {file.name} complete: "
            f"{report.inserted} rows inserted"
        )
        self._schedule_auto_reset(generation)

        await _call(self.on_complete, report)
        if self._notifications is not None:
            self._notifications.success(
                "Upload Successful",
                f"{UPLOAD_LABELS[self.upload_type]} uploaded successfully. "
                f"{report.validation.valid_rows} records processed.",
                action=self.success_action,
            )
        return report

    async def _transmit(
        self, file: CandidateFile, organization: Optional[str], force: bool
    ) -> Dict[str, Any]:
        if self.upload_type == "tickets":
            return await self._transport.upload_tickets(file, organization)
        return await self._transport.upload_usage(file, organization, force=force)

    def _build_report(
        self, file: CandidateFile, organization: Optional[str], response: Dict[str, Any]
    ) -> UploadReport:
        # Tickets wrap counts in ``data``; usage returns them at the top level.
        payload = response.get("data") if isinstance(response.get("data"), dict) else response
        inserted = int(payload.get("inserted") or 0)
        errors = [str(err) for err in payload.get("errors") or []]
        return UploadReport(
            upload_type=self.upload_type,
            organization=organization,
            file_name=file.name,
            inserted=inserted,
            validation=ValidationResult(
                is_valid=True,
                errors=errors,
                warnings=[],
                row_count=inserted,
                valid_rows=inserted,
                invalid_rows=len(errors),
            ),
            data=response,
            completed_at=self._clock().isoformat(),
        )

    # ------------------------------------------------------------------
    # Reset
    def reset(self) -> None:
        """Abandon the current attempt and return to ``idle`` with no file."""
        self._generation += 1
        self._stop_simulator()
        self._cancel_auto_reset()
        self._session = UploadSession(upload_type=self.upload_type)
        self._emit_progress()
        logger.info(f"{self.upload_type} upload reset")

    def retry(self) -> None:
        """Clear a failed attempt so a new file can be selected."""
        self.reset()

    def _schedule_auto_reset(self, generation: int) -> None:
        loop = asyncio.get_running_loop()
        self._auto_reset = loop.call_later(
            self.settings.auto_reset_delay, self._auto_reset_fired, generation
        )

    def _auto_reset_fired(self, generation: int) -> None:
        self._auto_reset = None
        if generation != self._generation or self._session.status is not UploadStatus.COMPLETE:
            return
        logger.debug(f"Auto-resetting completed {self.upload_type} upload")
        self._session = UploadSession(upload_type=self.upload_type)
        self._emit_progress()

    def _cancel_auto_reset(self) -> None:
        if self._auto_reset is not None:
            self._auto_reset.cancel()
            self._auto_reset = None

    # ------------------------------------------------------------------
    # Progress
    def _start_simulator(self, generation: int) -> None:
        def on_tick(value: int) -> None:
            if generation != self._generation or self._session.status is not UploadStatus.UPLOADING:
                return
            if value > self._session.progress:
                self._session.progress = value
                self._emit_progress()

        self._simulator = ProgressSimulator(
            on_tick,
            interval=self.settings.progress_interval,
            step=self.settings.progress_step,
            cap=self.settings.progress_cap,
        )
        self._simulator.start()

    def _stop_simulator(self) -> None:
        if self._simulator is not None:
            self._simulator.stop()
            self._simulator = None

    def _transition(self, status: UploadStatus, progress: int, message: Optional[str]) -> None:
        self._session.status = status
        self._session.progress = progress
        self._session.message = message
        logger.debug(f"{self.upload_type} upload {status.value} ({progress}%)")
        self._emit_progress()

    def _emit_progress(self) -> None:
        if self.on_progress is not None:
            self.on_progress(self._session.progress, self._session.status)

    # ------------------------------------------------------------------
    # Failure reporting
    def _fail(self, error: Exception) -> None:
        message = getattr(error, "message", None) or str(error) or "Upload failed"
        logger.error(f"{self.upload_type} upload failed: {message}")
        self._transition(UploadStatus.ERROR, 0, message)
        if self.on_error is not None:
            self.on_error(message)
        if self._notifications is not None:
            self._notifications.error(
                "Upload Failed",
                message,
                action=NotificationAction(label="Retry", on_click=self.retry),
            )

    def _report_rejection(self, message: str) -> None:
        logger.info(f"Rejected {self.upload_type} upload: {message}")
        if self.on_error is not None:
            self.on_error(message)
        if self._notifications is not None:
            self._notifications.error("Upload Failed", message)

    def _warn_conflict(self, warning: ConflictWarning, organization: Optional[str]) -> None:
        logger.warning(f"Usage upload for {organization} inside conflict window: {warning.message}")
        if self._notifications is not None:
            self._notifications.warning("Confirm Upload", warning.message, duration=0)

    def _handle_server_conflict(self, error: ConflictError, organization: Optional[str]) -> None:
        # The server refused to overwrite: keep the file so the caller can force it.
        self._transition(UploadStatus.IDLE, 0, error.message)
        try:
            last_upload = parse_timestamp(error.last_upload_date)
        except ValueError:
            last_upload = None
        self._session.conflict_warning = self._conflicts.evaluate(last_upload)
        logger.warning(f"Server refused usage upload for {organization}: {error.message}")
        if self._notifications is not None:
            self._notifications.warning("Confirm Upload", error.message, duration=0)
