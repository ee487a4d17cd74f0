"""
JSON record store: one document per source plus the rolling run log.

Layout under ``data_dir``::

    <source>.json          SourceRecord, camelCase keys
    scraping-log.json      [RunLogEntry], newest first

Every write goes to a temporary file in the same directory and is moved into
place with ``os.replace`` so readers never see a half-written document.
"""

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from pydantic import ValidationError

from ..errors import StoreError
from ..interfaces import RecordStore
from ..models import RunLogEntry, SourceRecord

logger = logging.getLogger(__name__)

RUN_LOG_FILE = "scraping-log.json"


class JsonRecordStore(RecordStore):
    """File-backed :class:`RecordStore`."""

    def __init__(self, data_dir="data", run_log_limit: int = 30):
        self.data_dir = Path(data_dir)
        self.run_log_limit = run_log_limit

    def _path(self, source_id: str) -> Path:
        if not source_id or "/" in source_id or source_id.startswith("."):
            raise StoreError(f"Invalid source id: {source_id!r}")
        return self.data_dir / f"{source_id}.json"

    # ---------------------------------------------- #
    # Blocking helpers, run in a worker thread

    def _write_json(self, path: Path, payload: Any) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StoreError(f"Could not write {path}: {e}") from e

    def _read_json(self, path: Path) -> Any:
        try:
            with path.open(encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Could not read {path}: {e}") from e

    def _load_record(self, path: Path) -> Optional[SourceRecord]:
        payload = self._read_json(path)
        if payload is None:
            return None
        try:
            return SourceRecord.model_validate(payload)
        except ValidationError as e:
            raise StoreError(f"Malformed record in {path}: {e}") from e

    # ---------------------------------------------- #
    # RecordStore

    async def store(self, source_id: str, record: SourceRecord) -> None:
        path = self._path(source_id)
        await asyncio.to_thread(self._write_json, path, record.to_json_dict())
        logger.debug("Stored %d updates for %s in %s", len(record.updates), source_id, path)

    async def retrieve(self, source_id: str) -> Optional[SourceRecord]:
        return await asyncio.to_thread(self._load_record, self._path(source_id))

    async def retrieve_all(self) -> List[SourceRecord]:
        """Every readable record; corrupt files are logged and skipped."""
        if not self.data_dir.exists():
            return []

        records: List[SourceRecord] = []
        for path in sorted(self.data_dir.glob("*.json")):
            if path.name == RUN_LOG_FILE:
                continue
            try:
                record = await asyncio.to_thread(self._load_record, path)
            except StoreError as e:
                logger.error(f"Skipping unreadable record: {e}")
                continue
            if record is not None:
                records.append(record)
        return records

    async def append_run(self, entry: RunLogEntry) -> None:
        path = self.data_dir / RUN_LOG_FILE
        try:
            runs = await asyncio.to_thread(self._read_json, path) or []
        except StoreError as e:
            logger.warning(f"Run log unreadable, starting a new one: {e}")
            runs = []
        if not isinstance(runs, list):
            runs = []

        runs.insert(0, entry.to_json_dict())
        await asyncio.to_thread(self._write_json, path, runs[: self.run_log_limit])

    async def list_runs(self) -> List[RunLogEntry]:
        payload = await asyncio.to_thread(self._read_json, self.data_dir / RUN_LOG_FILE) or []
        runs: List[RunLogEntry] = []
        for item in payload:
            try:
                runs.append(RunLogEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed run log entry: {e}")
        return runs

    # ---------------------------------------------- #

    async def data_age_minutes(self, source_id: str, now: Optional[datetime] = None) -> Optional[int]:
        """Minutes since the source was last scraped, ``None`` if never."""
        record = await self.retrieve(source_id)
        if record is None:
            return None
        now = now or datetime.now(tz=timezone.utc)
        last = record.last_scraped
        if last.tzinfo is None:
            last = last.replace(tzinfo=timezone.utc)
        return int((now - last).total_seconds() // 60)
