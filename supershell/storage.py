from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterator
from pathlib import Path

from platformdirs import user_config_dir
from pydantic import ValidationError

from .models import Record, RecordPatch

APP_NAME = "supershell"
STORE_FILENAME = "connections.json"

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Store could not be read or written."""


class RecordNotFoundError(StoreError):
    def __init__(self, nickname: str):
        super().__init__(f"not found: {nickname}")
        self.nickname = nickname


class DuplicateRecordError(StoreError):
    def __init__(self, nickname: str):
        super().__init__(f"nickname already exists: {nickname}")
        self.nickname = nickname


def get_config_dir(override: str | Path | None = None) -> Path:
    """Return the store directory, creating it owner-only if missing."""
    cfg_dir = Path(override) if override else Path(user_config_dir(APP_NAME, appauthor=False))
    if not cfg_dir.exists():
        try:
            cfg_dir.mkdir(mode=0o700, parents=True)
        except OSError as e:
            raise StoreError(f"cannot create config directory {cfg_dir}: {e}") from e
    return cfg_dir


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextlib.contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class Store:
    """Connection records keyed by nickname, mirrored to a JSON file.

    Every mutation rewrites the whole file through a temporary file in the
    same directory followed by ``os.replace``, so the canonical file is always
    either the previous or the new complete document.
    """

    def __init__(self, path: Path, records: dict[str, Record] | None = None):
        self.path = path
        self._records: dict[str, Record] = dict(records or {})
        self._lock = ReadWriteLock()

    @classmethod
    def open(cls, config_dir: str | Path | None = None) -> Store:
        """Load the store from the config directory. A missing file means an empty store."""
        path = get_config_dir(config_dir) / STORE_FILENAME
        return cls(path, _load_records(path))

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._records)

    def __contains__(self, nickname: object) -> bool:
        with self._lock.read():
            return nickname in self._records

    def add(self, record: Record) -> None:
        with self._lock.write():
            if record.nickname in self._records:
                raise DuplicateRecordError(record.nickname)
            self._records[record.nickname] = record.model_copy(deep=True)
            self._save()

    def update(self, nickname: str, patch: RecordPatch) -> Record:
        """Apply patch to an existing record and return the updated copy."""
        with self._lock.write():
            current = self._records.get(nickname)
            if current is None:
                raise RecordNotFoundError(nickname)
            try:
                updated = patch.apply(current)
            except ValidationError as e:
                raise StoreError(f"invalid update for {nickname}: {e}") from e
            self._records[nickname] = updated
            self._save()
            return updated.model_copy(deep=True)

    def delete(self, nickname: str) -> None:
        with self._lock.write():
            if nickname not in self._records:
                raise RecordNotFoundError(nickname)
            del self._records[nickname]
            self._save()

    def get(self, nickname: str) -> Record:
        with self._lock.read():
            record = self._records.get(nickname)
            if record is None:
                raise RecordNotFoundError(nickname)
            return record.model_copy(deep=True)

    def list(self) -> list[Record]:
        """Return all records sorted by nickname."""
        with self._lock.read():
            return [self._records[k].model_copy(deep=True) for k in sorted(self._records)]

    def _save(self) -> None:
        # Caller holds the write lock.
        payload = {nickname: r.to_document() for nickname, r in self._records.items()}
        text = json.dumps(payload, ensure_ascii=False, indent=2) + "\n"
        try:
            _atomic_write(self.path, text)
        except OSError as e:
            raise StoreError(f"cannot write {self.path}: {e}") from e
        logger.debug("saved %d record(s) to %s", len(payload), self.path)


def _load_records(path: Path) -> dict[str, Record]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("no store file at %s, starting empty", path)
        return {}
    except OSError as e:
        raise StoreError(f"cannot read {path}: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise StoreError(f"malformed JSON in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise StoreError(f"malformed store {path}: expected an object of records")

    try:
        records = {nickname: Record.model_validate(item) for nickname, item in data.items()}
    except ValidationError as e:
        raise StoreError(f"invalid record in {path}: {e}") from e
    logger.debug("loaded %d record(s) from %s", len(records), path)
    return records


def _atomic_write(path: Path, text: str) -> None:
    """Write text to a temp file beside path, fsync it, then rename over path."""
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    ) as handle:
        tmp_path = Path(handle.name)
        try:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        except BaseException:
            handle.close()
            tmp_path.unlink(missing_ok=True)
            raise
    try:
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
