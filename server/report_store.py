from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

try:  # pragma: no cover - platform specific imports
    import fcntl  # type: ignore
except ImportError:  # pragma: no cover - Windows fallback
    fcntl = None  # type: ignore

try:  # pragma: no cover - platform specific imports
    import msvcrt  # type: ignore
except ImportError:  # pragma: no cover - non-Windows
    msvcrt = None  # type: ignore

from config import get_settings
from tutorial.errors import PersistenceError
from tutorial.report import MemoryReportStore

REPORT_SUFFIX = ".json"


def default_reports_directory() -> Path:
    """Resolve the reports directory from the environment or settings."""
    override = os.getenv("TUTORIAL_REPORTS_PATH")
    if override:
        return Path(override)
    configured = get_settings().get("reports", {}).get("directory", "data/run_reports")
    path = Path(configured)
    if path.is_absolute():
        return path
    return Path(__file__).resolve().parent.parent / path


class FileReportStore:
    """Writes each run report as one JSON file under ``directory``.

    Writers are serialised with a process lock plus an advisory file lock,
    and every file is written to a temp path first and then moved into
    place so a reader never sees half a report.
    """

    def __init__(self, directory: os.PathLike[str] | str | None = None) -> None:
        self._directory = Path(directory) if directory is not None else default_reports_directory()
        self._lock = threading.RLock()

    @property
    def directory(self) -> Path:
        return self._directory

    def _lock_path(self) -> Path:
        return self._directory / ".reports.lock"

    @contextmanager
    def _storage_file_lock(self) -> Iterator[None]:
        lock_path = self._lock_path()
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = lock_path.open("a+b")
        try:
            _ensure_lock_file_initialized(handle)
            _acquire_lock(handle)
            yield
        finally:
            _release_lock(handle)
            handle.close()

    def path_for(self, name: str) -> Path:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("report name must be a non-empty string")
        if "/" in name or "\\" in name or name.startswith("."):
            raise ValueError(f"invalid report name: {name!r}")
        return self._directory / f"{name}{REPORT_SUFFIX}"

    def write(self, name: str, text: str) -> str:
        """Store ``text`` as report ``name`` and return the written path."""
        path = self.path_for(name)
        try:
            with self._lock:
                with self._storage_file_lock():
                    path.parent.mkdir(parents=True, exist_ok=True)
                    tmp_path = path.with_suffix(".tmp")
                    with tmp_path.open("w", encoding="utf-8") as handle:
                        handle.write(text)
                    tmp_path.replace(path)
        except OSError as exc:
            raise PersistenceError(f"Could not write run report {path}: {exc}") from exc
        return str(path)

    def read(self, name: str) -> Optional[str]:
        path = self.path_for(name)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def list_reports(self) -> List[str]:
        """Return stored report names, oldest name first."""
        if not self._directory.exists():
            return []
        return sorted(path.stem for path in self._directory.glob(f"run_*{REPORT_SUFFIX}"))

    def clear(self) -> None:
        with self._lock:
            with self._storage_file_lock():
                for path in self._directory.glob(f"run_*{REPORT_SUFFIX}"):
                    path.unlink(missing_ok=True)


def _ensure_lock_file_initialized(handle) -> None:
    handle.seek(0, os.SEEK_END)
    if handle.tell() == 0:
        handle.write(b"\0")
        handle.flush()
        try:
            os.fsync(handle.fileno())
        except OSError:
            pass
    handle.seek(0)


def _acquire_lock(handle) -> None:
    if fcntl is not None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        return
    if msvcrt is not None:  # pragma: no cover - Windows specific
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_LOCK, 1)
        return
    raise RuntimeError("No file locking mechanism available on this platform")


def _release_lock(handle) -> None:
    if fcntl is not None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        return
    if msvcrt is not None:  # pragma: no cover - Windows specific
        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        return
    raise RuntimeError("No file locking mechanism available on this platform")


__all__ = [
    "FileReportStore",
    "MemoryReportStore",
    "default_reports_directory",
]
