"""
Sensor Export - Clipboard Exporter.

Copies records as tab-separated text so they paste straight into a
spreadsheet. There is no fallback: a rejected write is reported.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import pyperclip

from .encoders import CsvEncoder
from .exceptions import ClipboardFailure, ExportException
from .formatter import RecordFormatter
from .models import ExportResult, Platform, RecordLike
from .platform_probe import PlatformProbe


logger = logging.getLogger(__name__)


class ClipboardWriter(ABC):
    """Text clipboard write primitive."""

    @abstractmethod
    async def write_text(self, text: str) -> None:
        pass


class SystemClipboard(ClipboardWriter):
    """Writes to the system clipboard via pyperclip."""

    async def write_text(self, text: str) -> None:
        try:
            await asyncio.to_thread(pyperclip.copy, text)
        except pyperclip.PyperclipException as e:
            raise ClipboardFailure(f"Clipboard is not available: {e}", cause=e) from e


class ClipboardExporter:
    """Formats records as TSV and writes them to the clipboard."""

    def __init__(
        self,
        formatter: RecordFormatter,
        writer: Optional[ClipboardWriter] = None,
        probe: Optional[PlatformProbe] = None,
    ):
        self._formatter = formatter
        self._writer = writer or SystemClipboard()
        self._probe = probe or PlatformProbe()
        self._encoder = CsvEncoder(delimiter="\t")

    async def copy_to_clipboard(self, records: Sequence[RecordLike]) -> ExportResult:
        platform = self._platform()
        try:
            rows = self._formatter.format_records(records)
            payload = self._encoder.encode(rows)
            await self._writer.write_text(payload.content)
        except ClipboardFailure as e:
            logger.error(f"Copy to clipboard failed: {e.message}")
            return ExportResult(success=False, message=e.message, platform=platform)
        except ExportException as e:
            logger.error(f"Copy to clipboard failed: {e.message}", exc_info=True)
            return ExportResult(success=False, message=e.message, platform=platform)
        except Exception as e:
            logger.error(f"Copy to clipboard failed: {e}", exc_info=True)
            return ExportResult(
                success=False,
                message=f"Failed to copy to clipboard: {e}",
                platform=platform,
            )

        logger.info(f"Copied {len(rows)} records to clipboard")
        return ExportResult(
            success=True,
            message=f"Copied {len(rows)} records to clipboard",
            platform=platform,
        )

    def _platform(self) -> Platform:
        try:
            return self._probe.platform_name()
        except Exception as e:
            logger.error(f"Platform probe failed, assuming web: {e}")
            return Platform.WEB
