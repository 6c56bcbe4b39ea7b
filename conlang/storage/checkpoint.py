"""Resumable batch checkpoints.

One JSON checkpoint per language, written with camelCase keys, plus an
advisory lock file that keeps two runs from mutating the same language at
once. A lock whose recorded PID is no longer running is treated as stale.
File IO runs in a worker thread so the event loop stays responsive.
"""

import asyncio
import os
import re
from pathlib import Path
from typing import Optional

import orjson
from pydantic import ValidationError as ModelValidationError

from conlang.config import get_settings
from conlang.core.contracts import ICheckpointStore
from conlang.core.types import BatchCheckpoint
from conlang.errors import CheckpointIOError, CheckpointLockedError
from conlang.observ import get_logger


logger = get_logger(__name__)


def slugify(name: str) -> str:
    """File-system safe form of a language name."""
    return re.sub(r"[^A-Za-z0-9_-]+", "_", name).strip("_") or "language"


def pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def write_atomic(path: Path, data: bytes) -> None:
    """Write data next to path and swap it in, so readers never see half a file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with open(tmp, "wb") as f:
        f.write(data)
    os.replace(tmp, path)


class CheckpointStore(ICheckpointStore):
    """File-backed checkpoint store for one language.

    Usage:
        with CheckpointStore("Kethri") as store:
            await store.save(checkpoint)
    """

    def __init__(self, language: str, directory: Optional[Path] = None):
        self.language = language
        self.directory = Path(directory) if directory else get_settings().checkpoint_dir
        slug = slugify(language)
        self.path = self.directory / f"{slug}.checkpoint.json"
        self.lock_path = self.directory / f"{slug}.lock"
        self._locked = False

    # ─────────────────────────────────────────────────────────────────────────
    # Locking
    # ─────────────────────────────────────────────────────────────────────────

    def _create_lock(self) -> int:
        self.directory.mkdir(parents=True, exist_ok=True)
        return os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)

    def acquire(self) -> None:
        """Take the single-writer lock.

        A lock left behind by a process that no longer exists is removed and
        taken over.

        Raises:
            CheckpointLockedError: Another live run holds the lock
            CheckpointIOError: Lock file could not be created
        """
        if self._locked:
            return

        try:
            try:
                fd = self._create_lock()
            except FileExistsError:
                if not self.lock_is_stale():
                    raise
                logger.warning(
                    "stale_checkpoint_lock_removed",
                    path=str(self.lock_path),
                    pid=self.holder_pid(),
                )
                self.lock_path.unlink(missing_ok=True)
                fd = self._create_lock()
        except FileExistsError:
            raise CheckpointLockedError(self.language, str(self.lock_path)) from None
        except OSError as e:
            raise CheckpointIOError("lock", str(e), language=self.language) from e

        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        self._locked = True
        logger.debug("checkpoint_lock_acquired", path=str(self.lock_path))

    def holder_pid(self) -> Optional[int]:
        """PID recorded in the lock file; None when unlocked or unreadable."""
        try:
            text = self.lock_path.read_text().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CheckpointIOError("lock", str(e), language=self.language) from e
        return int(text) if text.isdigit() and int(text) > 0 else None

    def lock_is_stale(self) -> bool:
        """True when the lock file names a process that is no longer running."""
        pid = self.holder_pid()
        return pid is not None and not pid_alive(pid)

    def clean(self, force: bool = False) -> list[Path]:
        """Remove the checkpoint and lock files; returns what was removed.

        Raises:
            CheckpointLockedError: A live run holds the lock and force is off
        """
        if self.lock_path.exists() and not (force or self._locked or self.lock_is_stale()):
            raise CheckpointLockedError(self.language, str(self.lock_path))

        removed = []
        for path in (self.path, self.lock_path):
            try:
                if path.exists():
                    path.unlink()
                    removed.append(path)
            except OSError as e:
                raise CheckpointIOError("clean", str(e), path=str(path)) from e

        self._locked = False
        logger.info("checkpoint_cleaned", language=self.language, removed=len(removed))
        return removed

    def release(self) -> None:
        if not self._locked:
            return
        try:
            self.lock_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("checkpoint_lock_release_failed", path=str(self.lock_path), error=str(e))
        self._locked = False
        logger.debug("checkpoint_lock_released", path=str(self.lock_path))

    @property
    def locked(self) -> bool:
        return self._locked

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()

    # ─────────────────────────────────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────────────────────────────────

    def _write(self, checkpoint: BatchCheckpoint) -> None:
        data = orjson.dumps(
            checkpoint.model_dump(mode="json", by_alias=True),
            option=orjson.OPT_INDENT_2,
        )
        write_atomic(self.path, data)

    def _read(self) -> Optional[BatchCheckpoint]:
        if not self.path.exists():
            return None
        with open(self.path, "rb") as f:
            return BatchCheckpoint.model_validate(orjson.loads(f.read()))

    async def save(self, checkpoint: BatchCheckpoint) -> None:
        try:
            await asyncio.to_thread(self._write, checkpoint)
        except OSError as e:
            raise CheckpointIOError("save", str(e), path=str(self.path)) from e

        logger.info(
            "checkpoint_saved",
            path=str(self.path),
            current_index=checkpoint.current_index,
            processed=len(checkpoint.processed_words),
        )

    async def load(self) -> Optional[BatchCheckpoint]:
        try:
            checkpoint = await asyncio.to_thread(self._read)
        except OSError as e:
            raise CheckpointIOError("load", str(e), path=str(self.path)) from e
        except (orjson.JSONDecodeError, ModelValidationError) as e:
            raise CheckpointIOError("load", f"corrupt checkpoint: {e}", path=str(self.path)) from e

        if checkpoint is not None:
            logger.info(
                "checkpoint_loaded",
                path=str(self.path),
                current_index=checkpoint.current_index,
                processed=len(checkpoint.processed_words),
            )
        return checkpoint

    async def discard(self) -> None:
        try:
            await asyncio.to_thread(self.path.unlink, missing_ok=True)
        except OSError as e:
            raise CheckpointIOError("discard", str(e), path=str(self.path)) from e
        logger.info("checkpoint_discarded", path=str(self.path))
