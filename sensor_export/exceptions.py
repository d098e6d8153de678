"""
Sensor Export - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the typed failures raised inside the export pipeline.

- Encoders and backends raise these, never partial results
- The orchestrator converts them into failed ExportResults
- Every exception carries context for logging

============================================================
EXCEPTION HIERARCHY
============================================================
ExportException (base)
├── ConfigurationError
│   └── InvalidConfigError
├── InvalidExportRequest
├── FormattingDegradation
├── EncodingFailure
├── StorageFailure
│   ├── DownloadFailure
│   ├── PrimaryStorageFailure
│   └── FallbackStorageFailure
├── ClipboardFailure
└── NotificationFailure

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    """Degraded output, export continues."""

    MEDIUM = "medium"
    """Single export call failed."""

    HIGH = "high"
    """Misconfiguration, every export will fail."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class ExportException(Exception):
    """
    Base exception for all export pipeline errors.

    All exceptions carry:
    - severity: for log level selection
    - context: for debugging
    - cause: the underlying exception, if any
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(ExportException):
    """Error in export configuration."""

    default_severity = Severity.HIGH


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            context={
                "config_key": key,
                "actual_value": str(value)[:100],
                "reason": reason,
            },
        )


# ============================================================
# REQUEST / FORMATTING / ENCODING ERRORS
# ============================================================

class InvalidExportRequest(ExportException):
    """Export request cannot be processed as given."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        super().__init__(message, context=context, **kwargs)


class FormattingDegradation(ExportException):
    """A single record field could not be rendered and was substituted."""

    default_severity = Severity.LOW

    def __init__(
        self,
        field: str,
        value: Any,
        record_id: Any = None,
        **kwargs,
    ):
        super().__init__(
            message=f"Could not render {field} of record {record_id!r}",
            context={
                "field": field,
                "value": str(value)[:100],
                "record_id": record_id,
            },
            **kwargs,
        )


class EncodingFailure(ExportException):
    """The row set could not be turned into a payload."""

    def __init__(self, message: str, format_name: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if format_name:
            context["format"] = format_name
        super().__init__(message, context=context, **kwargs)


# ============================================================
# STORAGE ERRORS
# ============================================================

class StorageFailure(ExportException):
    """Base class for persistence errors."""

    def __init__(
        self,
        message: str,
        filename: Optional[str] = None,
        directory: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if filename:
            context["filename"] = filename
        if directory:
            context["directory"] = directory
        super().__init__(message, context=context, **kwargs)


class DownloadFailure(StorageFailure):
    """Browser download could not be triggered."""


class PrimaryStorageFailure(StorageFailure):
    """Native write to the primary directory failed."""

    default_severity = Severity.LOW


class FallbackStorageFailure(StorageFailure):
    """
    Both native write attempts failed.

    The message is the primary failure's message; the fallback
    failure is kept on the instance for logging only.
    """

    def __init__(
        self,
        primary: PrimaryStorageFailure,
        fallback: StorageFailure,
    ):
        super().__init__(
            primary.message,
            filename=primary.context.get("filename"),
            context={
                "primary_directory": primary.context.get("directory"),
                "fallback_directory": fallback.context.get("directory"),
                "fallback_message": fallback.message,
            },
            cause=primary.cause or primary,
        )
        self.primary = primary
        self.fallback = fallback


# ============================================================
# SIDE CHANNEL ERRORS
# ============================================================

class ClipboardFailure(ExportException):
    """Clipboard write rejected (permission or platform support)."""


class NotificationFailure(ExportException):
    """Export notification could not be delivered. Logged only."""

    default_severity = Severity.LOW
