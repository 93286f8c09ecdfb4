"""CSV import: parses an uploaded file in-request (never queued)."""

from __future__ import annotations

import csv
import io
import logging

from auditflow.application.dtos.sync import SyncConfigResult, SyncResult
from auditflow.application.interfaces import IUserUpserter
from auditflow.domain.exceptions import ValidationException
from auditflow.infrastructure.sync.mapping import apply_records

logger = logging.getLogger(__name__)


class CsvImportStrategy:
    """Implements ISyncStrategy for source_type csv over already-received content."""

    def __init__(
        self,
        config: SyncConfigResult,
        upserter: IUserUpserter,
        content: str | bytes,
    ) -> None:
        self.config = config
        self.upserter = upserter
        self.content = content.decode("utf-8-sig") if isinstance(content, bytes) else content

    async def sync(self, triggered_by: str | None = None) -> SyncResult:
        delimiter = str(self.config.settings.get("delimiter") or ",")
        reader = csv.DictReader(io.StringIO(self.content), delimiter=delimiter)
        if not reader.fieldnames:
            raise ValidationException("CSV file has no header row")
        records = [
            {k.strip(): (v or "").strip() for k, v in row.items() if k is not None}
            for row in reader
        ]
        logger.info(
            "CSV import %s: %d rows (triggered by %s)",
            self.config.name,
            len(records),
            triggered_by or "system",
        )
        return await apply_records(records, self.config.field_mapping, self.upserter)
