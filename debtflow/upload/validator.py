"""Synchronous pre-flight checks for candidate CSV files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict

MAX_FILE_SIZE = 10 * 1024 * 1024

INVALID_EXTENSION = "Please select a CSV file"
FILE_TOO_LARGE = "File size must be less than 10MB"
EMPTY_FILE = "File appears to be empty"


class CandidateFile(BaseModel):
    """A file the user picked for upload.

    Either ``path`` points at a file on disk or ``content`` holds the bytes.
    ``size`` is what the validator checks; it is not re-measured.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    size: int
    content_type: str = "text/csv"
    path: Optional[Path] = None
    content: Optional[bytes] = None

    @property
    def extension(self) -> str:
        return os.path.splitext(self.name)[1].lower()

    @classmethod
    def from_path(cls, path: str | Path) -> "CandidateFile":
        path = Path(path)
        return cls(name=path.name, size=path.stat().st_size, path=path)

    @classmethod
    def from_bytes(cls, name: str, content: bytes) -> "CandidateFile":
        return cls(name=name, size=len(content), content=content)

    def read_bytes(self) -> bytes:
        if self.content is not None:
            return self.content
        if self.path is not None:
            return self.path.read_bytes()
        return b""


def validate_file(
    file: CandidateFile, max_file_size: int = MAX_FILE_SIZE
) -> Optional[str]:
    """Return the first failing check's message, or ``None`` when acceptable.

    Checks run in a fixed order: extension, size limit, emptiness.
    """
    if not file.name.lower().endswith(".csv"):
        return INVALID_EXTENSION
    if file.size > max_file_size:
        return FILE_TOO_LARGE
    if file.size == 0:
        return EMPTY_FILE
    return None
