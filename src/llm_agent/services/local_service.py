from __future__ import annotations

import logging
from pathlib import Path

from llm_agent.services.file_service import FileService

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE_KB = 100


class LocalService(FileService):
    """Read-only access to files under ``work_dir``."""

    def __init__(
        self,
        work_dir: Path | None = None,
        max_file_size_kb: int = DEFAULT_MAX_FILE_SIZE_KB,
    ) -> None:
        self.work_dir = (work_dir or Path.cwd()).resolve()
        self.max_file_size_kb = max_file_size_kb

    def _resolve(self, path: str) -> Path:
        """Resolve path relative to work_dir, refusing paths that escape it."""
        p = (self.work_dir / path).resolve()
        if p != self.work_dir and self.work_dir not in p.parents:
            raise PermissionError(f"{path} is outside the working directory")
        return p

    def read_file(self, path: str) -> str:
        p = self._resolve(path)
        size = p.stat().st_size
        if size > self.max_file_size_kb * 1024:
            raise ValueError(
                f"{path} is {size / 1024:.1f} KB, over the {self.max_file_size_kb} KB limit"
            )
        logger.info("Read file: %s (%.1f KB)", p, size / 1024)
        return p.read_text(encoding="utf-8")

    def list_directory(self, path: str = ".") -> list[str]:
        p = self._resolve(path)
        return sorted(
            f"{entry.name}/" if entry.is_dir() else entry.name for entry in p.iterdir()
        )

    def file_exists(self, path: str) -> bool:
        try:
            return self._resolve(path).exists()
        except PermissionError:
            return False
