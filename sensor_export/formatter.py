"""
Sensor Export - Record Formatter.

============================================================
PURPOSE
============================================================
Turn raw sensor records into display-normalized rows:
- Stable column order (ID, Temperature, Location, Status, Timestamp)
- Unit-suffixed temperature
- Localized status label
- Locale-aware long-form timestamp

============================================================
GUARANTEES
============================================================
- Pure: no I/O, input records are never mutated
- Total: never raises; a malformed field degrades to a
  best-effort string for that record only
- Row order equals input order

============================================================
"""

import logging
import math
from datetime import datetime, timezone, tzinfo
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .config import ExportConfig, get_config
from .exceptions import FormattingDegradation
from .locales import DEFAULT_LOCALE, MONTH_NAMES, TIME_SEPARATORS, translate
from .models import FormattedRow, RecordLike, SensorRecord, SensorStatus


logger = logging.getLogger(__name__)


def format_number(value: float) -> str:
    """Render a number the way the dashboard shows it (no trailing .0)."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def parse_timestamp(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class RecordFormatter:
    """
    Formats sensor records for export.

    Unit conversion is not done here: temperatures are rendered as
    given, followed by the fixed unit suffix.
    """

    def __init__(
        self,
        locale: str = DEFAULT_LOCALE,
        unit_suffix: str = "°C",
        display_timezone: Optional[tzinfo] = None,
    ):
        self._locale = locale if locale in MONTH_NAMES else DEFAULT_LOCALE
        self._unit_suffix = unit_suffix
        self._tz = display_timezone or timezone.utc

    @property
    def locale(self) -> str:
        return self._locale

    def format_records(self, records: Sequence[RecordLike]) -> List[FormattedRow]:
        """Format records into rows, preserving order."""
        return [self.format_record(record) for record in records]

    def format_record(self, record: RecordLike) -> FormattedRow:
        """Format a single record. Never raises."""
        record_id = self._field(record, "id")

        temperature, temperature_label = self._render_temperature(record, record_id)
        status_label, is_danger = self._render_status(record, record_id)

        location = self._field(record, "location", "lokasi")
        timestamp = self._field(record, "timestamp", "waktu")

        return FormattedRow(
            id=record_id if record_id is not None else "",
            temperature_label=temperature_label,
            location="" if location is None else str(location),
            status_label=status_label,
            timestamp_label=self.format_timestamp(timestamp, record_id),
            temperature=temperature,
            is_danger=is_danger,
        )

    def format_timestamp(self, raw: Any, record_id: Any = None) -> str:
        """
        Render a timestamp as 'DD Month YYYY HH:MM:SS' in the display
        timezone. Unparsable values are passed through verbatim.
        """
        if raw is None:
            return ""
        try:
            moment = parse_timestamp(str(raw)).astimezone(self._tz)
        except (TypeError, ValueError) as e:
            self._degraded(FormattingDegradation("timestamp", raw, record_id, cause=e))
            return str(raw)

        month = MONTH_NAMES[self._locale][moment.month - 1]
        sep = TIME_SEPARATORS[self._locale]
        clock = sep.join(f"{part:02d}" for part in (moment.hour, moment.minute, moment.second))
        return f"{moment.day:02d} {month} {moment.year} {clock}"

    # --------------------------------------------------------
    # Field rendering
    # --------------------------------------------------------

    def _render_temperature(self, record: RecordLike, record_id: Any) -> Tuple[Optional[float], str]:
        raw = self._field(record, "temperature", "suhu")
        try:
            value = float(raw)
        except (TypeError, ValueError) as e:
            self._degraded(FormattingDegradation("temperature", raw, record_id, cause=e))
            return None, "" if raw is None else str(raw)
        if not math.isfinite(value):
            self._degraded(FormattingDegradation("temperature", raw, record_id))
            return None, str(raw)
        return value, f"{format_number(value)}{self._unit_suffix}"

    def _render_status(self, record: RecordLike, record_id: Any) -> Tuple[str, bool]:
        raw = self._field(record, "status")
        try:
            status = SensorStatus.parse(raw)
        except ValueError as e:
            self._degraded(FormattingDegradation("status", raw, record_id, cause=e))
            return "" if raw is None else str(raw), False
        return translate(f"STATUS_{status.value}", self._locale), status is SensorStatus.DANGER

    @staticmethod
    def _field(record: RecordLike, *names: str) -> Any:
        if isinstance(record, SensorRecord):
            return getattr(record, names[0])
        if isinstance(record, Mapping):
            for name in names:
                if name in record:
                    return record[name]
            return None
        return getattr(record, names[0], None)

    @staticmethod
    def _degraded(issue: FormattingDegradation) -> None:
        logger.warning(f"{issue.message}, substituting raw value: {issue.context}")


def create_record_formatter(config: Optional[ExportConfig] = None) -> RecordFormatter:
    """Create a formatter from export configuration."""
    config = config or get_config()
    return RecordFormatter(
        locale=config.locale,
        unit_suffix=config.temperature_unit.suffix,
        display_timezone=config.timezone,
    )
