"""
Sensor Export - Core Models.

============================================================
PURPOSE
============================================================
Define the data flowing through the export pipeline:
- Sensor records (caller-owned input)
- Formatted rows (display projection)
- Export requests, encoded payloads and results

============================================================
OWNERSHIP
============================================================
- SensorRecord is immutable and never mutated by the pipeline
- FormattedRow and EncodedPayload live for a single export call
- ExportResult is the terminal value returned to the caller

============================================================
"""

import base64
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union


# ============================================================
# ENUMS
# ============================================================

class SensorStatus(Enum):
    """Sensor reading status."""
    SAFE = "SAFE"
    DANGER = "DANGER"

    @classmethod
    def parse(cls, value: Any) -> "SensorStatus":
        """Parse a status code, accepting the API's Indonesian codes."""
        if isinstance(value, cls):
            return value
        code = str(value).strip().upper()
        aliases = {"AMAN": cls.SAFE, "BAHAYA": cls.DANGER}
        if code in aliases:
            return aliases[code]
        return cls(code)


class ExportFormat(Enum):
    """Supported export formats."""
    CSV = "csv"
    SPREADSHEET = "xlsx"
    DOCUMENT = "pdf"
    CLIPBOARD = "clipboard"

    @property
    def file_extension(self) -> Optional[str]:
        """Extension used in the output filename."""
        if self is ExportFormat.CLIPBOARD:
            return None
        return self.value

    @property
    def type_label(self) -> str:
        """Label handed to the notification collaborator."""
        mapping = {
            "csv": "CSV",
            "xlsx": "Excel",
            "pdf": "PDF",
            "clipboard": "Clipboard",
        }
        return mapping[self.value]


class Platform(Enum):
    """Host platform the export runs on."""
    WEB = "web"
    ANDROID = "android"
    IOS = "ios"

    @property
    def is_native(self) -> bool:
        return self is not Platform.WEB


class StorageDirectory(Enum):
    """Native storage roots, in fallback order."""
    DOCUMENTS = "Documents"
    EXTERNAL_STORAGE = "ExternalStorage"


class FileEncoding(Enum):
    """Write encoding used by the native filesystem."""
    UTF8 = "utf8"
    BASE64 = "base64"


# ============================================================
# SENSOR RECORD
# ============================================================

@dataclass(frozen=True)
class SensorRecord:
    """One timestamped sensor reading."""
    id: int
    temperature: float
    location: str
    status: SensorStatus
    timestamp: str

    @property
    def is_danger(self) -> bool:
        return self.status is SensorStatus.DANGER

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SensorRecord":
        """
        Build a record from an API payload.

        Accepts both the English field names and the sensor_logs
        table columns (suhu, lokasi, waktu).
        """
        return cls(
            id=int(data["id"]),
            temperature=float(_first(data, "temperature", "suhu")),
            location=str(_first(data, "location", "lokasi")),
            status=SensorStatus.parse(data["status"]),
            timestamp=str(_first(data, "timestamp", "waktu")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "temperature": self.temperature,
            "location": self.location,
            "status": self.status.value,
            "timestamp": self.timestamp,
        }


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    raise KeyError(keys[0])


RecordLike = Union[SensorRecord, Mapping[str, Any]]


# ============================================================
# FORMATTED ROW
# ============================================================

COLUMNS: List[str] = ["ID", "Temperature", "Location", "Status", "Timestamp"]


@dataclass(frozen=True)
class FormattedRow:
    """
    Display-ready projection of a SensorRecord.

    temperature and is_danger are not columns; they carry the raw
    values the document statistics are computed from.
    """
    id: Any
    temperature_label: str
    location: str
    status_label: str
    timestamp_label: str

    temperature: Optional[float] = None
    is_danger: bool = False

    def as_list(self) -> List[Any]:
        """Column values in COLUMNS order."""
        return [
            self.id,
            self.temperature_label,
            self.location,
            self.status_label,
            self.timestamp_label,
        ]

    def to_dict(self) -> Dict[str, Any]:
        return dict(zip(COLUMNS, self.as_list()))


# ============================================================
# REQUEST
# ============================================================

PERIOD_KEY_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def _period_text(period_key: Any) -> str:
    return "" if period_key is None else str(period_key)


def is_safe_period_key(period_key: Any) -> bool:
    """Check that a period key can be embedded in a filename."""
    return bool(PERIOD_KEY_PATTERN.fullmatch(_period_text(period_key)))


def sanitize_period_key(period_key: Any) -> str:
    """Replace anything that is not filename-safe with underscores."""
    cleaned = re.sub(r"[^A-Za-z0-9_-]", "_", _period_text(period_key))
    return cleaned or "export"


@dataclass
class ExportRequest:
    """A single export call."""
    records: Sequence[RecordLike]
    format: ExportFormat
    period_key: str = "24h"
    period_label: Optional[str] = None


@dataclass
class EncodeMeta:
    """Metadata handed to encoders alongside the rows."""
    period_label: Optional[str] = None
    generated_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


# ============================================================
# PAYLOAD
# ============================================================

@dataclass
class EncodedPayload:
    """
    Encoder output, consumed once by a persistence backend.

    Binary formats are carried either as raw bytes or as base64
    text (is_base64=True).
    """
    content: Union[str, bytes]
    mime_type: str
    is_binary: bool
    is_base64: bool = False
    record_count: int = 0

    def to_bytes(self) -> bytes:
        """Raw bytes of the document."""
        if self.is_base64:
            text = self.content.decode("ascii") if isinstance(self.content, bytes) else self.content
            return base64.b64decode(text)
        if isinstance(self.content, bytes):
            return self.content
        return self.content.encode("utf-8")

    def to_base64(self) -> str:
        """Base64 text form of the document."""
        if self.is_base64:
            return self.content.decode("ascii") if isinstance(self.content, bytes) else self.content
        return base64.b64encode(self.to_bytes()).decode("ascii")

    @property
    def size_bytes(self) -> int:
        return len(self.to_bytes())


# ============================================================
# RESULT
# ============================================================

@dataclass
class ExportResult:
    """Terminal value of an export call. Never retried automatically."""
    success: bool
    message: str
    platform: Platform
    filename: Optional[str] = None
    file_path: Optional[str] = None
    directory_label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "platform": self.platform.value,
        }
        if self.filename:
            data["filename"] = self.filename
        if self.file_path:
            data["filePath"] = self.file_path
        return data
