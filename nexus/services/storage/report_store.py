# nexus/services/storage/report_store.py
from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from pydantic import ValidationError as PydanticValidationError

from nexus.models.models import Report, ReportSummary
from nexus.services.export.report_export import render_report_html
from nexus.utils.errors import NotFound, StorageError
from nexus.utils.logger import get_logger
from .json_files import read_json, write_json_atomic


logger = get_logger(__name__)

_REPORT_ID = re.compile(r"^[A-Za-z0-9_-]+$")


def _as_utc(value: datetime) -> datetime:
    # naive timestamps from hand-edited files are taken as UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ReportStore:
    """
    One JSON file per report under ``reports_dir``, keyed by report id.

    The directory is created by the app bootstrap, not here. Blocking file
    I/O is pushed to a worker thread.
    """

    def __init__(self, reports_dir: Path):
        self.reports_dir = Path(reports_dir)

    def _path(self, report_id: str) -> Path:
        if not report_id or not _REPORT_ID.match(report_id):
            raise NotFound(f"Report '{report_id}' not found")
        return self.reports_dir / f"{report_id}.json"

    # * --------------------------------------------------
    # * sync bodies (run in a worker thread)
    # * --------------------------------------------------
    def _list_sync(self) -> List[ReportSummary]:
        try:
            files = sorted(self.reports_dir.glob("*.json"))
        except OSError as e:
            logger.exception("[reports] failed to list %s", self.reports_dir)
            raise StorageError("Failed to list reports") from e

        summaries: List[ReportSummary] = []
        for path in files:
            try:
                summaries.append(Report.model_validate(read_json(path)).summary())
            except (OSError, ValueError, PydanticValidationError) as e:
                logger.warning("[reports] skipping unreadable report %s: %s", path.name, e)

        # sort() is stable, so equal timestamps keep file-name order
        summaries.sort(key=lambda s: _as_utc(s.created_at), reverse=True)
        return summaries

    def _get_sync(self, report_id: str) -> Report:
        path = self._path(report_id)
        if not path.exists():
            raise NotFound(f"Report '{report_id}' not found")
        try:
            return Report.model_validate(read_json(path))
        except (OSError, ValueError, PydanticValidationError) as e:
            logger.exception("[reports] failed to read %s", path)
            raise StorageError("Error reading report") from e

    def _save_sync(self, report: Report) -> None:
        path = self._path(report.id)
        try:
            write_json_atomic(path, report.to_json_dict())
        except OSError as e:
            logger.exception("[reports] failed to write %s", path)
            raise StorageError("Error saving report") from e

    def _delete_sync(self, report_id: str) -> None:
        path = self._path(report_id)
        if not path.exists():
            raise NotFound(f"Report '{report_id}' not found")
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise NotFound(f"Report '{report_id}' not found") from e
        except OSError as e:
            logger.exception("[reports] failed to delete %s", path)
            raise StorageError("Error deleting report") from e

    # * --------------------------------------------------
    # * operations
    # * --------------------------------------------------
    async def list_summaries(self) -> List[ReportSummary]:
        """Summaries (no content, no additional info), newest ``createdAt`` first."""
        return await asyncio.to_thread(self._list_sync)

    async def get(self, report_id: str) -> Report:
        return await asyncio.to_thread(self._get_sync, report_id)

    async def save(self, report: Report) -> None:
        await asyncio.to_thread(self._save_sync, report)
        logger.info("[reports] saved | id=%s", report.id)

    async def delete(self, report_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, report_id)
        logger.info("[reports] deleted | id=%s", report_id)

    async def render_export_document(self, report_id: str) -> str:
        report = await self.get(report_id)
        return render_report_html(report)

    async def count(self) -> int:
        return len(await self.list_summaries())
