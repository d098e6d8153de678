"""
Tests for the export orchestrator.

============================================================
PURPOSE
============================================================
End-to-end checks of an export call:
1. Format selection and filenames
2. Platform tagging (web vs native)
3. Fallback ladder through the orchestrator
4. Error normalization
5. Fire-and-forget notifications
6. Clipboard dispatch

============================================================
"""

import asyncio
import io
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from openpyxl import load_workbook

from sensor_export.backends import LocalFilesystem
from sensor_export.clipboard import ClipboardWriter
from sensor_export.config import ENV_PREFIX, ExportConfig
from sensor_export.models import (
    ExportFormat,
    ExportRequest,
    Platform,
    StorageDirectory,
)
from sensor_export.notifications import LocalNotification, NotificationDispatcher
from sensor_export.orchestrator import ExportOrchestrator, create_export_orchestrator


@pytest.fixture
def web_orchestrator(export_config, web_probe, browser_host):
    return create_export_orchestrator(
        config=export_config,
        probe=web_probe,
        browser_host=browser_host,
    )


@pytest.fixture
def native_orchestrator(export_config, android_probe):
    return create_export_orchestrator(config=export_config, probe=android_probe)


class RecordingClipboard(ClipboardWriter):
    def __init__(self):
        self.texts = []

    async def write_text(self, text: str) -> None:
        self.texts.append(text)


class RecordingDispatcher(NotificationDispatcher):
    def __init__(self):
        self.scheduled = []

    async def check_permission(self) -> bool:
        return True

    async def request_permission(self) -> bool:
        return True

    async def schedule(self, notification: LocalNotification) -> None:
        self.scheduled.append(notification)


# ============================================================
# WEB EXPORTS
# ============================================================

class TestWebExports:
    """Exports on the web platform."""

    @pytest.mark.asyncio
    async def test_document_scenario(self, web_orchestrator, browser_host, scenario_records):
        result = await web_orchestrator.export_document(scenario_records, "24h", "Last 24 Hours")

        assert result.success is True
        assert result.filename == "analytics_24h.pdf"
        assert result.platform is Platform.WEB
        assert result.file_path is None
        assert result.to_dict()["platform"] == "web"
        assert "filePath" not in result.to_dict()
        assert browser_host.downloads[0][1].startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_spreadsheet_downloaded_as_raw_workbook(
        self, web_orchestrator, browser_host, scenario_records
    ):
        result = await web_orchestrator.export_spreadsheet(scenario_records, "7d")

        assert result.filename == "analytics_7d.xlsx"
        wb = load_workbook(io.BytesIO(browser_host.downloads[0][1]))
        assert wb.active.max_row == 3

    @pytest.mark.asyncio
    async def test_csv_export_is_idempotent(self, web_orchestrator, browser_host, scenario_records):
        first = await web_orchestrator.export_csv(scenario_records, "24h")
        second = await web_orchestrator.export_csv(scenario_records, "24h")

        assert first.filename == second.filename == "analytics_24h.csv"
        assert browser_host.downloads[0][1] == browser_host.downloads[1][1]

    @pytest.mark.asyncio
    async def test_download_failure_becomes_result(
        self, export_config, web_probe, failing_browser_host, scenario_records
    ):
        orchestrator = create_export_orchestrator(
            config=export_config, probe=web_probe, browser_host=failing_browser_host
        )

        result = await orchestrator.export_csv(scenario_records, "24h")

        assert result.success is False
        assert "popup blocked" in result.message
        assert result.filename == "analytics_24h.csv"
        assert result.platform is Platform.WEB


# ============================================================
# NATIVE EXPORTS
# ============================================================

class TestNativeExports:
    """Exports on native platforms."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,extension", [
        ("export_csv", "csv"),
        ("export_spreadsheet", "xlsx"),
        ("export_document", "pdf"),
    ])
    async def test_success_carries_file_path(
        self, native_orchestrator, export_config, scenario_records, method, extension
    ):
        result = await getattr(native_orchestrator, method)(scenario_records, "6h")

        target = export_config.documents_dir / f"analytics_6h.{extension}"
        assert result.success is True
        assert result.platform is Platform.ANDROID
        assert result.file_path == target.resolve().as_uri()
        assert target.exists()

    @pytest.mark.asyncio
    async def test_spreadsheet_written_as_valid_workbook(
        self, native_orchestrator, export_config, scenario_records
    ):
        await native_orchestrator.export_spreadsheet(scenario_records, "24h")

        wb = load_workbook(export_config.documents_dir / "analytics_24h.xlsx")
        assert wb.sheetnames == ["Sensor Data"]

    @pytest.mark.asyncio
    async def test_fallback_location_reported(
        self, export_config, android_probe, scripted_filesystem, scenario_records
    ):
        fs = scripted_filesystem({StorageDirectory.DOCUMENTS: PermissionError("denied")})
        orchestrator = create_export_orchestrator(config=export_config, probe=android_probe, filesystem=fs)

        result = await orchestrator.export_csv(scenario_records, "24h")

        assert result.success is True
        assert result.file_path == "file:///storage/ExternalStorage/analytics_24h.csv"

    @pytest.mark.asyncio
    async def test_both_locations_fail(
        self, export_config, android_probe, scripted_filesystem, scenario_records
    ):
        fs = scripted_filesystem({
            StorageDirectory.DOCUMENTS: PermissionError("documents denied"),
            StorageDirectory.EXTERNAL_STORAGE: OSError("no external storage"),
        })
        orchestrator = create_export_orchestrator(config=export_config, probe=android_probe, filesystem=fs)

        result = await orchestrator.export_document(scenario_records, "24h")

        assert result.success is False
        assert "documents denied" in result.message
        assert "no external storage" not in result.message
        assert result.file_path is None


# ============================================================
# ERROR NORMALIZATION
# ============================================================

class TestErrorNormalization:
    """No exception escapes an export call."""

    @pytest.mark.asyncio
    async def test_encoding_failure(self, export_config, ios_probe, scenario_records, scripted_filesystem):
        fs = scripted_filesystem()
        orchestrator = create_export_orchestrator(config=export_config, probe=ios_probe, filesystem=fs)

        with patch("sensor_export.encoders.Workbook", side_effect=RuntimeError("workbook exploded")):
            result = await orchestrator.export_spreadsheet(scenario_records, "24h")

        assert result.success is False
        assert result.platform is Platform.IOS
        assert "workbook exploded" in result.message
        assert fs.writes == []

    @pytest.mark.asyncio
    async def test_unexpected_error(self, web_orchestrator, scenario_records):
        with patch.object(web_orchestrator, "_select_backend", side_effect=KeyError("backend")):
            result = await web_orchestrator.export_csv(scenario_records, "24h")

        assert result.success is False
        assert result.message.startswith("Failed to export CSV")

    @pytest.mark.asyncio
    async def test_unsafe_period_key(self, web_orchestrator, browser_host, scenario_records):
        result = await web_orchestrator.export_csv(scenario_records, "../24h")

        assert result.success is False
        assert "period key" in result.message.lower()
        assert result.filename == "analytics____24h.csv"
        assert browser_host.downloads == []

    @pytest.mark.asyncio
    async def test_probe_failure_assumes_web(self, export_config, browser_host, scenario_records):
        probe = MagicMock()
        probe.platform_name.side_effect = RuntimeError("no host")
        orchestrator = ExportOrchestrator(config=export_config, probe=probe, browser_host=browser_host)

        result = await orchestrator.export_csv(scenario_records, "24h")

        assert result.success is True
        assert result.platform is Platform.WEB

    @pytest.mark.asyncio
    async def test_malformed_record_does_not_fail_export(self, web_orchestrator, scenario_records):
        records = list(scenario_records) + [{"id": 3, "temperature": "n/a", "timestamp": "yesterday"}]

        result = await web_orchestrator.export_document(records, "24h")

        assert result.success is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["inf", "-Infinity", "NaN"])
    async def test_non_finite_temperature_degrades_only_its_row(
        self, web_orchestrator, browser_host, scenario_records, raw
    ):
        records = list(scenario_records) + [
            {"id": 3, "temperature": raw, "location": "Boiler", "status": "SAFE",
             "timestamp": "2024-01-01T10:10:00Z"}
        ]

        result = await web_orchestrator.export_document(records, "24h")

        assert result.success is True
        assert browser_host.downloads[0][1].startswith(b"%PDF")

    @pytest.mark.asyncio
    async def test_numeric_period_key(self, web_orchestrator, scenario_records):
        result = await web_orchestrator.export_csv(scenario_records, 24)

        assert result.success is True
        assert result.filename == "analytics_24.csv"

    @pytest.mark.asyncio
    async def test_missing_period_key(self, web_orchestrator, browser_host, scenario_records):
        result = await web_orchestrator.export_csv(scenario_records, None)

        assert result.success is False
        assert result.filename == "analytics_export.csv"
        assert browser_host.downloads == []

    @pytest.mark.asyncio
    async def test_period_key_with_trailing_newline(self, web_orchestrator, scenario_records):
        result = await web_orchestrator.export_csv(scenario_records, "24h\n")

        assert result.success is False

    @pytest.mark.asyncio
    async def test_format_given_as_plain_value(self, web_orchestrator, scenario_records):
        result = await web_orchestrator.export(ExportRequest(scenario_records, "csv", "24h"))

        assert result.success is True
        assert result.filename == "analytics_24h.csv"

    @pytest.mark.asyncio
    async def test_unsupported_format(self, web_orchestrator, browser_host, scenario_records):
        result = await web_orchestrator.export(ExportRequest(scenario_records, "docx", "24h"))

        assert result.success is False
        assert "Unsupported export format" in result.message
        assert result.filename is None
        assert result.platform is Platform.WEB
        assert browser_host.downloads == []


# ============================================================
# NOTIFICATIONS
# ============================================================

class TestNotifications:
    """Notification side effect after a successful persist."""

    @pytest.mark.asyncio
    async def test_notifier_called_after_success(
        self, export_config, android_probe, scripted_filesystem, scenario_records
    ):
        notifier = MagicMock()
        notifier.show_export_success = AsyncMock(return_value=None)
        orchestrator = create_export_orchestrator(
            config=export_config, probe=android_probe, filesystem=scripted_filesystem(), notifier=notifier
        )

        result = await orchestrator.export_document(scenario_records, "24h")
        await orchestrator.drain_notifications()

        assert result.success is True
        notifier.show_export_success.assert_awaited_once_with("PDF", "analytics_24h.pdf", "Documents")

    @pytest.mark.asyncio
    async def test_web_notification_uses_downloads_label(
        self, export_config, web_probe, browser_host, scenario_records
    ):
        notifier = MagicMock()
        notifier.show_export_success = AsyncMock()
        orchestrator = create_export_orchestrator(
            config=export_config, probe=web_probe, browser_host=browser_host, notifier=notifier
        )

        await orchestrator.export_spreadsheet(scenario_records, "24h")
        await orchestrator.drain_notifications()

        notifier.show_export_success.assert_awaited_once_with("Excel", "analytics_24h.xlsx", "Downloads")

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_flip_result(
        self, export_config, web_probe, browser_host, scenario_records, caplog
    ):
        notifier = MagicMock()
        notifier.show_export_success = AsyncMock(side_effect=RuntimeError("dispatcher down"))
        orchestrator = create_export_orchestrator(
            config=export_config, probe=web_probe, browser_host=browser_host, notifier=notifier
        )

        result = await orchestrator.export_csv(scenario_records, "24h")
        await orchestrator.drain_notifications()
        await asyncio.sleep(0)

        assert result.success is True
        assert "dispatcher down" in caplog.text

    @pytest.mark.asyncio
    async def test_synchronous_notifier_error_is_contained(
        self, export_config, web_probe, browser_host, scenario_records
    ):
        notifier = MagicMock()
        notifier.show_export_success.side_effect = RuntimeError("not async")
        orchestrator = create_export_orchestrator(
            config=export_config, probe=web_probe, browser_host=browser_host, notifier=notifier
        )

        result = await orchestrator.export_csv(scenario_records, "24h")

        assert result.success is True

    @pytest.mark.asyncio
    async def test_no_notification_on_failure(
        self, export_config, web_probe, failing_browser_host, scenario_records
    ):
        notifier = MagicMock()
        notifier.show_export_success = AsyncMock()
        orchestrator = create_export_orchestrator(
            config=export_config, probe=web_probe, browser_host=failing_browser_host, notifier=notifier
        )

        await orchestrator.export_csv(scenario_records, "24h")
        await orchestrator.drain_notifications()

        notifier.show_export_success.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dispatcher_wired_from_config(
        self, export_config, android_probe, scripted_filesystem, scenario_records
    ):
        dispatcher = RecordingDispatcher()
        orchestrator = create_export_orchestrator(
            config=export_config, probe=android_probe,
            filesystem=scripted_filesystem(), dispatcher=dispatcher,
        )

        await orchestrator.export_csv(scenario_records, "24h")
        await orchestrator.drain_notifications()

        assert len(dispatcher.scheduled) == 1
        assert dispatcher.scheduled[0].body == (
            'CSV file "analytics_24h.csv" saved to the Documents folder'
        )

    @pytest.mark.asyncio
    async def test_notifications_switched_off_by_environment(
        self, monkeypatch, tmp_path, android_probe, scripted_filesystem, scenario_records, caplog
    ):
        monkeypatch.setenv(f"{ENV_PREFIX}NOTIFICATIONS", "0")
        monkeypatch.setenv(f"{ENV_PREFIX}LOCALE", "en")
        monkeypatch.setenv(f"{ENV_PREFIX}TIMEZONE", "UTC")
        config = ExportConfig.from_env(str(tmp_path / "missing.env"))
        dispatcher = RecordingDispatcher()
        orchestrator = create_export_orchestrator(
            config=config, probe=android_probe,
            filesystem=scripted_filesystem(), dispatcher=dispatcher,
        )

        with caplog.at_level(logging.DEBUG, logger="sensor_export.orchestrator"):
            result = await orchestrator.export_csv(scenario_records, "24h")
            await orchestrator.drain_notifications()
            await asyncio.sleep(0)

        assert result.success is True
        assert dispatcher.scheduled == []
        assert "NotificationReason.DISABLED" in caplog.text


# ============================================================
# CLIPBOARD / REQUEST DISPATCH
# ============================================================

class TestDispatch:
    """ExportRequest dispatch, including the clipboard."""

    @pytest.mark.asyncio
    async def test_clipboard_request(self, export_config, web_probe, scenario_records):
        clipboard = RecordingClipboard()
        orchestrator = create_export_orchestrator(
            config=export_config, probe=web_probe, clipboard_writer=clipboard
        )

        result = await orchestrator.export(ExportRequest(scenario_records, ExportFormat.CLIPBOARD))

        assert result.success is True
        assert result.filename is None
        assert clipboard.texts[0].startswith("ID\tTemperature\tLocation\tStatus\tTimestamp")

    @pytest.mark.asyncio
    async def test_request_dispatch_by_format(self, web_orchestrator, scenario_records):
        result = await web_orchestrator.export(
            ExportRequest(scenario_records, ExportFormat.DOCUMENT, "7d", "Last 7 Days")
        )

        assert result.filename == "analytics_7d.pdf"

    def test_build_filename(self, web_orchestrator):
        assert web_orchestrator.build_filename("24h", ExportFormat.SPREADSHEET) == "analytics_24h.xlsx"

    def test_default_filesystem_uses_config_roots(self, export_config, web_probe):
        orchestrator = ExportOrchestrator(config=export_config, probe=web_probe)

        assert isinstance(orchestrator._filesystem, LocalFilesystem)
