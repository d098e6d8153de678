"""
Sensor Export Pipeline.

============================================================
PURPOSE
============================================================
Export a selected window of sensor readings as a document:
format the records, encode them (CSV, XLSX, PDF, clipboard
TSV), persist the bytes on the current platform and report a
uniform result.

============================================================
CRITICAL CONSTRAINTS
============================================================
- This package does NOT fetch data or decide what to export
- Input records are never mutated
- No exception escapes an export call
- Notifications are fire-and-forget

============================================================
USAGE
============================================================

from sensor_export import create_export_orchestrator, SensorRecord

orchestrator = create_export_orchestrator()

result = await orchestrator.export_document(
    records,
    period_key="24h",
    period_label="Last 24 Hours",
)
if result.success:
    print(result.file_path or result.filename)

============================================================
"""

from .config import ExportConfig, get_config, set_config
from .models import (
    SensorRecord,
    SensorStatus,
    FormattedRow,
    ExportFormat,
    ExportRequest,
    EncodedPayload,
    EncodeMeta,
    ExportResult,
    Platform,
    StorageDirectory,
)
from .exceptions import (
    ExportException,
    EncodingFailure,
    StorageFailure,
    PrimaryStorageFailure,
    FallbackStorageFailure,
    ClipboardFailure,
)
from .formatter import RecordFormatter, create_record_formatter
from .encoders import (
    CsvEncoder,
    SpreadsheetEncoder,
    DocumentEncoder,
    compute_statistics,
    create_encoder,
)
from .platform_probe import PlatformProbe
from .backends import (
    WebDownloadBackend,
    NativeFilesystemBackend,
    DownloadsFolderHost,
    LocalFilesystem,
)
from .clipboard import ClipboardExporter, SystemClipboard
from .notifications import (
    NotificationDispatcher,
    NotificationService,
    NotificationResult,
    create_notification_service,
)
from .periods import Period, TemperatureUnit, convert_records
from .orchestrator import ExportOrchestrator, create_export_orchestrator


__all__ = [
    # Config
    "ExportConfig",
    "get_config",
    "set_config",
    # Models
    "SensorRecord",
    "SensorStatus",
    "FormattedRow",
    "ExportFormat",
    "ExportRequest",
    "EncodedPayload",
    "EncodeMeta",
    "ExportResult",
    "Platform",
    "StorageDirectory",
    # Errors
    "ExportException",
    "EncodingFailure",
    "StorageFailure",
    "PrimaryStorageFailure",
    "FallbackStorageFailure",
    "ClipboardFailure",
    # Pipeline
    "RecordFormatter",
    "create_record_formatter",
    "CsvEncoder",
    "SpreadsheetEncoder",
    "DocumentEncoder",
    "compute_statistics",
    "create_encoder",
    "PlatformProbe",
    "WebDownloadBackend",
    "NativeFilesystemBackend",
    "DownloadsFolderHost",
    "LocalFilesystem",
    "ClipboardExporter",
    "SystemClipboard",
    "NotificationDispatcher",
    "NotificationService",
    "NotificationResult",
    "create_notification_service",
    "Period",
    "TemperatureUnit",
    "convert_records",
    "ExportOrchestrator",
    "create_export_orchestrator",
]
