"""CSV upload pipeline: validation, transmission and progress reporting."""

from __future__ import annotations

from .conflict import ConflictChecker, ConflictPolicy, ConflictWarning
from .pipeline import UploadPipeline, UploadSession, UploadStatus, UploadTransport
from .progress import ProgressSimulator
from .validator import CandidateFile, validate_file

__all__ = [
    "CandidateFile",
    "ConflictChecker",
    "ConflictPolicy",
    "ConflictWarning",
    "ProgressSimulator",
    "UploadPipeline",
    "UploadSession",
    "UploadStatus",
    "UploadTransport",
    "validate_file",
]
