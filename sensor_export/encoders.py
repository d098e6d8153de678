"""
Sensor Export - Format Encoders.

============================================================
PURPOSE
============================================================
Encode formatted rows into document payloads:
- CSV (and tab-separated text for the clipboard)
- XLSX spreadsheet (openpyxl)
- Paginated PDF report (matplotlib PDF backend)

============================================================
REQUIREMENTS
============================================================
- Encoders are platform-agnostic: they never decide where
  the payload goes
- Any internal error surfaces as EncodingFailure, never as a
  partial payload
- Report statistics are recomputed from the rows being
  exported, not taken from upstream

============================================================
"""

import base64
import csv
import io
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import tzinfo
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, List, Optional, Sequence

from matplotlib.backends.backend_pdf import PdfPages
from matplotlib.figure import Figure
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from .config import ExportConfig, get_config
from .exceptions import EncodingFailure
from .formatter import RecordFormatter
from .locales import DEFAULT_LOCALE, translate
from .models import COLUMNS, EncodedPayload, EncodeMeta, ExportFormat, FormattedRow


logger = logging.getLogger(__name__)


# Character widths for ID, Temperature, Location, Status, Timestamp
COLUMN_WIDTHS = [10, 10, 20, 10, 30]

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MIME = "application/pdf"


# ============================================================
# STATISTICS
# ============================================================

def round_half_up(value: float, places: int = 1) -> Decimal:
    """Round for display; 44.25 renders as 44.3."""
    quantum = Decimal(1).scaleb(-places)
    return Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP)


@dataclass
class DocumentStatistics:
    """Statistics line of the PDF report."""
    average: float
    maximum: float
    minimum: float
    danger_count: int
    record_count: int

    def format_line(self, locale: str = DEFAULT_LOCALE, unit_suffix: str = "°C") -> str:
        parts = [
            f"{translate('AVERAGE', locale)}: {round_half_up(self.average)}{unit_suffix}",
            f"{translate('MAXIMUM', locale)}: {round_half_up(self.maximum)}{unit_suffix}",
            f"{translate('MINIMUM', locale)}: {round_half_up(self.minimum)}{unit_suffix}",
            f"{translate('DANGER_EVENTS', locale)}: {self.danger_count}",
        ]
        return " | ".join(parts)


def compute_statistics(rows: Sequence[FormattedRow]) -> DocumentStatistics:
    """
    Compute report statistics from raw row values.

    Rows without a usable (finite) temperature are counted as records but
    excluded from average/max/min. No temperatures yields zeros.
    """
    temperatures = [
        row.temperature for row in rows
        if row.temperature is not None and math.isfinite(row.temperature)
    ]
    danger_count = sum(1 for row in rows if row.is_danger)

    if not temperatures:
        return DocumentStatistics(0.0, 0.0, 0.0, danger_count, len(rows))

    return DocumentStatistics(
        average=sum(temperatures) / len(temperatures),
        maximum=max(temperatures),
        minimum=min(temperatures),
        danger_count=danger_count,
        record_count=len(rows),
    )


# ============================================================
# BASE ENCODER
# ============================================================

class BaseEncoder(ABC):
    """Base class for format encoders."""

    @property
    @abstractmethod
    def format(self) -> ExportFormat:
        """Export format this encoder produces."""
        pass

    @property
    @abstractmethod
    def content_type(self) -> str:
        """MIME type of the output."""
        pass

    @property
    def file_extension(self) -> Optional[str]:
        return self.format.file_extension

    def encode(
        self,
        rows: Sequence[FormattedRow],
        meta: Optional[EncodeMeta] = None,
    ) -> EncodedPayload:
        """Encode rows, wrapping any internal error in EncodingFailure."""
        meta = meta or EncodeMeta()
        try:
            return self._encode(rows, meta)
        except EncodingFailure:
            raise
        except Exception as e:
            raise EncodingFailure(
                f"Could not encode {len(rows)} rows as {self.format.value}: {e}",
                format_name=self.format.value,
                cause=e,
            ) from e

    @abstractmethod
    def _encode(self, rows: Sequence[FormattedRow], meta: EncodeMeta) -> EncodedPayload:
        pass


# ============================================================
# CSV ENCODER
# ============================================================

class CsvEncoder(BaseEncoder):
    """Encodes rows as delimited text with a header line."""

    def __init__(self, delimiter: str = ","):
        self._delimiter = delimiter

    @property
    def format(self) -> ExportFormat:
        return ExportFormat.CSV if self._delimiter != "\t" else ExportFormat.CLIPBOARD

    @property
    def content_type(self) -> str:
        if self._delimiter == "\t":
            return "text/tab-separated-values;charset=utf-8"
        return "text/csv;charset=utf-8"

    def _encode(self, rows: Sequence[FormattedRow], meta: EncodeMeta) -> EncodedPayload:
        output = io.StringIO()
        writer = csv.writer(output, delimiter=self._delimiter, quoting=csv.QUOTE_MINIMAL)

        writer.writerow(COLUMNS)
        for row in rows:
            writer.writerow(row.as_list())

        return EncodedPayload(
            content=output.getvalue(),
            mime_type=self.content_type,
            is_binary=False,
            record_count=len(rows),
        )


# ============================================================
# SPREADSHEET ENCODER
# ============================================================

class SpreadsheetEncoder(BaseEncoder):
    """
    Encodes rows as an XLSX workbook with one sheet.

    as_base64 selects the base64 text form, which is what the
    native filesystem accepts.
    """

    def __init__(self, as_base64: bool = False, sheet_name: str = "Sensor Data"):
        self._as_base64 = as_base64
        self._sheet_name = sheet_name

    @property
    def format(self) -> ExportFormat:
        return ExportFormat.SPREADSHEET

    @property
    def content_type(self) -> str:
        return XLSX_MIME

    def _encode(self, rows: Sequence[FormattedRow], meta: EncodeMeta) -> EncodedPayload:
        wb = Workbook()
        ws = wb.active
        ws.title = self._sheet_name

        ws.append(COLUMNS)
        header_fill = PatternFill(start_color="2C3E50", end_color="2C3E50", fill_type="solid")
        for cell in ws[1]:
            cell.font = Font(bold=True, color="FFFFFF")
            cell.fill = header_fill

        for row in rows:
            ws.append([_cell_value(value) for value in row.as_list()])

        for index, width in enumerate(COLUMN_WIDTHS, start=1):
            ws.column_dimensions[get_column_letter(index)].width = width
        ws.freeze_panes = "A2"

        buffer = io.BytesIO()
        wb.save(buffer)
        data = buffer.getvalue()

        if self._as_base64:
            return EncodedPayload(
                content=base64.b64encode(data).decode("ascii"),
                mime_type=self.content_type,
                is_binary=True,
                is_base64=True,
                record_count=len(rows),
            )
        return EncodedPayload(
            content=data,
            mime_type=self.content_type,
            is_binary=True,
            record_count=len(rows),
        )


def _cell_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


# ============================================================
# DOCUMENT ENCODER
# ============================================================

A4_PORTRAIT = (8.27, 11.69)

HEADER_COLOR = (44 / 255, 62 / 255, 80 / 255)
STRIPE_COLOR = (245 / 255, 245 / 255, 245 / 255)
DANGER_FILL = (253 / 255, 226 / 255, 228 / 255)
DANGER_TEXT = (192 / 255, 57 / 255, 43 / 255)

# Relative table column widths, proportional to COLUMN_WIDTHS
TABLE_COL_WIDTHS = [w / sum(COLUMN_WIDTHS) for w in COLUMN_WIDTHS]


def paginate(
    rows: Sequence[FormattedRow],
    first_page: int,
    per_page: int,
) -> List[List[FormattedRow]]:
    """Split rows into pages; the first page holds fewer rows under the header."""
    pages = [list(rows[:first_page])]
    for start in range(first_page, len(rows), per_page):
        pages.append(list(rows[start:start + per_page]))
    return pages


class DocumentEncoder(BaseEncoder):
    """
    Encodes rows as a paginated PDF report.

    Page one carries the title, generation time, optional period,
    record count and statistics line above the table. Every page
    gets a 'Page i of N' footer. Output is base64 text.
    """

    def __init__(
        self,
        locale: str = DEFAULT_LOCALE,
        unit_suffix: str = "°C",
        display_timezone: Optional[tzinfo] = None,
        rows_first_page: int = 28,
        rows_per_page: int = 40,
    ):
        self._locale = locale
        self._unit_suffix = unit_suffix
        self._timestamps = RecordFormatter(locale=locale, display_timezone=display_timezone)
        self._rows_first_page = rows_first_page
        self._rows_per_page = rows_per_page

    @property
    def format(self) -> ExportFormat:
        return ExportFormat.DOCUMENT

    @property
    def content_type(self) -> str:
        return PDF_MIME

    def statistics_line(self, rows: Sequence[FormattedRow]) -> str:
        return compute_statistics(rows).format_line(self._locale, self._unit_suffix)

    def _encode(self, rows: Sequence[FormattedRow], meta: EncodeMeta) -> EncodedPayload:
        pages = paginate(rows, self._rows_first_page, self._rows_per_page)
        title = translate("REPORT_TITLE", self._locale)

        buffer = io.BytesIO()
        with PdfPages(buffer, metadata={"Title": title, "CreationDate": None}) as pdf:
            for number, page_rows in enumerate(pages, start=1):
                fig = Figure(figsize=A4_PORTRAIT)
                if number == 1:
                    table_top = self._draw_header(fig, title, rows, meta)
                    capacity = self._rows_first_page
                else:
                    table_top = 0.94
                    capacity = self._rows_per_page
                self._draw_table(fig, page_rows, table_top, capacity)
                fig.text(
                    0.5, 0.03,
                    translate("PAGE_OF", self._locale, page=number, total=len(pages)),
                    ha="center", fontsize=8, color="0.4",
                )
                pdf.savefig(fig)

        logger.debug(f"Rendered PDF report: {len(rows)} rows on {len(pages)} pages")

        return EncodedPayload(
            content=base64.b64encode(buffer.getvalue()).decode("ascii"),
            mime_type=self.content_type,
            is_binary=True,
            is_base64=True,
            record_count=len(rows),
        )

    def _draw_header(
        self,
        fig: Figure,
        title: str,
        rows: Sequence[FormattedRow],
        meta: EncodeMeta,
    ) -> float:
        """Draw the summary block; returns the top of the table area."""
        left = 0.07
        fig.text(left, 0.95, title, fontsize=18, va="top", weight="bold")

        generated = self._timestamps.format_timestamp(meta.generated_at.isoformat())
        lines = [f"{translate('GENERATED_ON', self._locale)}: {generated}"]
        if meta.period_label:
            lines.append(f"{translate('PERIOD', self._locale)}: {meta.period_label}")
        lines.append(f"{translate('TOTAL_RECORDS', self._locale)}: {len(rows)}")
        lines.append(self.statistics_line(rows))

        y = 0.91
        for line in lines:
            fig.text(left, y, line, fontsize=10, color="0.35", va="top")
            y -= 0.022
        return y - 0.01

    def _draw_table(
        self,
        fig: Figure,
        page_rows: Sequence[FormattedRow],
        top: float,
        capacity: int,
    ) -> None:
        bottom = 0.07
        ax = fig.add_axes([0.07, bottom, 0.86, top - bottom])
        ax.set_axis_off()

        cells = [COLUMNS] + [[str(value) for value in row.as_list()] for row in page_rows]
        height = len(cells) / (capacity + 1)
        table = ax.table(
            cellText=cells,
            cellLoc="left",
            colWidths=TABLE_COL_WIDTHS,
            bbox=[0, 1 - height, 1, height],
        )
        table.auto_set_font_size(False)
        table.set_fontsize(8)

        status_col = COLUMNS.index("Status")
        for col in range(len(COLUMNS)):
            header = table[(0, col)]
            header.set_facecolor(HEADER_COLOR)
            header.get_text().set_color("white")
            header.get_text().set_weight("bold")

        for index, row in enumerate(page_rows, start=1):
            if index % 2 == 0:
                for col in range(len(COLUMNS)):
                    table[(index, col)].set_facecolor(STRIPE_COLOR)
            if row.is_danger:
                cell = table[(index, status_col)]
                cell.set_facecolor(DANGER_FILL)
                cell.get_text().set_color(DANGER_TEXT)
                cell.get_text().set_weight("bold")


# ============================================================
# FACTORY
# ============================================================

def create_encoder(
    export_format: ExportFormat,
    config: Optional[ExportConfig] = None,
    as_base64: bool = False,
) -> BaseEncoder:
    """Create the encoder for a format."""
    config = config or get_config()

    if export_format is ExportFormat.CSV:
        return CsvEncoder()
    if export_format is ExportFormat.CLIPBOARD:
        return CsvEncoder(delimiter="\t")
    if export_format is ExportFormat.SPREADSHEET:
        return SpreadsheetEncoder(as_base64=as_base64)
    if export_format is ExportFormat.DOCUMENT:
        return DocumentEncoder(
            locale=config.locale,
            unit_suffix=config.temperature_unit.suffix,
            display_timezone=config.timezone,
            rows_first_page=config.rows_first_page,
            rows_per_page=config.rows_per_page,
        )
    raise ValueError(f"Unsupported export format: {export_format}")
