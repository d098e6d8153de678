"""
Sensor Export - Orchestrator.

============================================================
PURPOSE
============================================================
Public entry point of the export pipeline.

    Records
       |
       v
    [FORMATTER]  <- display rows
       |
       v
    [ENCODER]    <- CSV / XLSX / PDF
       |
       v
    [PROBE]      <- web / android / ios
       |
       v
    [BACKEND]    <- download / filesystem + fallback
       |
       v
    ExportResult --> (fire and forget) notifier

============================================================
FAILURE ISOLATION
============================================================
No exception escapes an export call: every failure becomes an
ExportResult with success=False and a readable message. A
notification failure never changes a result already computed.

============================================================
"""

import asyncio
import logging
from typing import Optional, Sequence, Set

from .backends import (
    BrowserHost,
    DownloadsFolderHost,
    FilesystemAdapter,
    LocalFilesystem,
    PersistenceBackend,
    create_backend,
)
from .clipboard import ClipboardExporter, ClipboardWriter
from .config import ExportConfig, get_config
from .encoders import create_encoder
from .exceptions import ExportException, InvalidExportRequest, NotificationFailure
from .formatter import RecordFormatter, create_record_formatter
from .models import (
    EncodeMeta,
    ExportFormat,
    ExportRequest,
    ExportResult,
    Platform,
    RecordLike,
    is_safe_period_key,
    sanitize_period_key,
)
from .notifications import (
    ExportNotifier,
    NotificationDispatcher,
    create_notification_service,
)
from .platform_probe import PlatformProbe


logger = logging.getLogger(__name__)


class ExportOrchestrator:
    """
    Selects encoder by format and backend by platform.

    Holds no per-export state, so concurrent calls do not need a
    lock; only pending notification tasks are tracked.
    """

    def __init__(
        self,
        config: Optional[ExportConfig] = None,
        formatter: Optional[RecordFormatter] = None,
        probe: Optional[PlatformProbe] = None,
        browser_host: Optional[BrowserHost] = None,
        filesystem: Optional[FilesystemAdapter] = None,
        notifier: Optional[ExportNotifier] = None,
        clipboard_writer: Optional[ClipboardWriter] = None,
    ):
        self._config = config or get_config()
        self._formatter = formatter or create_record_formatter(self._config)
        self._probe = probe or PlatformProbe()
        self._browser_host = browser_host or DownloadsFolderHost(self._config.downloads_dir)
        self._filesystem = filesystem or LocalFilesystem(self._config.storage_roots())
        self._notifier = notifier
        self._clipboard = ClipboardExporter(self._formatter, clipboard_writer, self._probe)
        self._pending_notifications: Set[asyncio.Task] = set()

        logger.info(f"ExportOrchestrator initialized: {self._config.to_dict()}")

    # --------------------------------------------------------
    # Public API
    # --------------------------------------------------------

    async def export_csv(
        self,
        records: Sequence[RecordLike],
        period_key: str,
        period_label: Optional[str] = None,
    ) -> ExportResult:
        return await self.export(ExportRequest(records, ExportFormat.CSV, period_key, period_label))

    async def export_spreadsheet(
        self,
        records: Sequence[RecordLike],
        period_key: str,
        period_label: Optional[str] = None,
    ) -> ExportResult:
        return await self.export(
            ExportRequest(records, ExportFormat.SPREADSHEET, period_key, period_label)
        )

    async def export_document(
        self,
        records: Sequence[RecordLike],
        period_key: str,
        period_label: Optional[str] = None,
    ) -> ExportResult:
        return await self.export(
            ExportRequest(records, ExportFormat.DOCUMENT, period_key, period_label)
        )

    async def copy_to_clipboard(self, records: Sequence[RecordLike]) -> ExportResult:
        return await self._clipboard.copy_to_clipboard(records)

    async def export(self, request: ExportRequest) -> ExportResult:
        """Run one export request end to end."""
        platform = self._platform()
        filename: Optional[str] = None
        type_label = "export"

        try:
            export_format = self._resolve_format(request.format)
            type_label = export_format.type_label
            if export_format is ExportFormat.CLIPBOARD:
                return await self.copy_to_clipboard(request.records)

            filename = self.build_filename(sanitize_period_key(request.period_key), export_format)

            if not is_safe_period_key(request.period_key):
                raise InvalidExportRequest(
                    f"Period key {request.period_key!r} is not a filesystem-safe token",
                    field="period_key",
                )

            rows = self._formatter.format_records(request.records)

            encoder = create_encoder(export_format, self._config, as_base64=platform.is_native)
            meta = EncodeMeta(period_label=request.period_label)
            if encoder.format is ExportFormat.CSV:
                payload = encoder.encode(rows, meta)
            else:
                payload = await asyncio.to_thread(encoder.encode, rows, meta)

            backend = self._select_backend(platform)
            result = await backend.persist(payload, filename)
        except ExportException as e:
            logger.error(f"{type_label} export failed: {e.message} | {e.context}")
            return self._failure(platform, filename, e.message)
        except Exception as e:
            logger.error(f"{type_label} export failed: {e}", exc_info=True)
            return self._failure(platform, filename, f"Failed to export {type_label}: {e}")

        logger.info(
            f"{type_label} export succeeded: {filename} "
            f"({payload.record_count} records, {result.platform.value})"
        )
        self._notify(type_label, result)
        return result

    def build_filename(self, period_key: str, export_format: ExportFormat) -> str:
        """analytics_<periodKey>.<ext>"""
        return f"{self._config.filename_prefix}_{period_key}.{export_format.file_extension}"

    async def drain_notifications(self) -> None:
        """Wait for notifications still in flight."""
        if self._pending_notifications:
            await asyncio.gather(*self._pending_notifications, return_exceptions=True)

    # --------------------------------------------------------
    # Internals
    # --------------------------------------------------------

    def _platform(self) -> Platform:
        try:
            return self._probe.platform_name()
        except Exception as e:
            logger.error(f"Platform probe failed, assuming web: {e}")
            return Platform.WEB

    def _select_backend(self, platform: Platform) -> PersistenceBackend:
        return create_backend(
            platform,
            browser_host=self._browser_host,
            filesystem=self._filesystem,
            cleanup_delay_seconds=self._config.download_cleanup_delay_seconds,
        )

    @staticmethod
    def _resolve_format(value: object) -> ExportFormat:
        """Accept an ExportFormat or its value ("csv", "xlsx", ...)."""
        try:
            return ExportFormat(value)
        except ValueError as e:
            raise InvalidExportRequest(
                f"Unsupported export format: {value!r}",
                field="format",
                cause=e,
            ) from e

    def _failure(self, platform: Platform, filename: Optional[str], message: str) -> ExportResult:
        return ExportResult(
            success=False,
            message=message,
            platform=platform,
            filename=filename,
        )

    def _notify(self, type_label: str, result: ExportResult) -> None:
        """Schedule the success notification without waiting for it."""
        if self._notifier is None or not result.success:
            return
        try:
            task = asyncio.ensure_future(
                self._notifier.show_export_success(
                    type_label,
                    result.filename,
                    result.directory_label or "Documents",
                )
            )
        except Exception as e:
            logger.error(f"Could not schedule export notification: {e}", exc_info=True)
            return
        self._pending_notifications.add(task)
        task.add_done_callback(self._notification_done)

    def _notification_done(self, task: asyncio.Task) -> None:
        self._pending_notifications.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            failure = NotificationFailure(f"Export notification failed: {error}", cause=error)
            logger.error(f"{failure.message} | {failure.context}")
        else:
            logger.debug(f"Export notification result: {task.result()}")


def create_export_orchestrator(
    config: Optional[ExportConfig] = None,
    probe: Optional[PlatformProbe] = None,
    browser_host: Optional[BrowserHost] = None,
    filesystem: Optional[FilesystemAdapter] = None,
    notifier: Optional[ExportNotifier] = None,
    clipboard_writer: Optional[ClipboardWriter] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> ExportOrchestrator:
    """
    Create an orchestrator wired with default collaborators.

    With a dispatcher and no explicit notifier, success notifications
    go through a NotificationService built from config.
    """
    config = config or get_config()
    if notifier is None and dispatcher is not None:
        notifier = create_notification_service(dispatcher, config, probe)
    return ExportOrchestrator(
        config=config,
        probe=probe,
        browser_host=browser_host,
        filesystem=filesystem,
        notifier=notifier,
        clipboard_writer=clipboard_writer,
    )
