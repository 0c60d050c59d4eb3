"""Read-only workspace access used by the built-in tools."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class FileService(ABC):
    """Paths are relative to ``work_dir``; implementations refuse anything outside it."""

    work_dir: Path

    @abstractmethod
    def read_file(self, path: str) -> str:
        """Whole file as text. Raises PermissionError, FileNotFoundError or ValueError (too large)."""

    @abstractmethod
    def list_directory(self, path: str = ".") -> list[str]:
        """Sorted entry names; directories carry a trailing '/'."""

    @abstractmethod
    def file_exists(self, path: str) -> bool: ...
