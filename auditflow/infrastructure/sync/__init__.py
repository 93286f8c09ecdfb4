"""External user synchronization strategies (REST, directory, CSV)."""

from auditflow.infrastructure.sync.csv_import import CsvImportStrategy
from auditflow.infrastructure.sync.directory import (
    DirectoryClientFactory,
    DirectorySyncStrategy,
)
from auditflow.infrastructure.sync.factory import build_queued_strategy
from auditflow.infrastructure.sync.mapping import apply_records, map_record
from auditflow.infrastructure.sync.rest import RestApiSyncStrategy

__all__ = [
    "CsvImportStrategy",
    "DirectoryClientFactory",
    "DirectorySyncStrategy",
    "RestApiSyncStrategy",
    "apply_records",
    "build_queued_strategy",
    "map_record",
]
