"""Shared fixtures for the sensor export tests."""

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from sensor_export.backends import BrowserHost, DownloadAnchor, FilesystemAdapter
from sensor_export.config import ExportConfig, PLATFORM_ENV_VAR
from sensor_export.models import FileEncoding, SensorRecord, SensorStatus, StorageDirectory
from sensor_export.platform_probe import PlatformProbe


@pytest.fixture
def scenario_records() -> List[SensorRecord]:
    """The two-reading kitchen/garage scenario."""
    return [
        SensorRecord(
            id=1,
            temperature=36.5,
            location="Kitchen",
            status=SensorStatus.SAFE,
            timestamp="2024-01-01T10:00:00Z",
        ),
        SensorRecord(
            id=2,
            temperature=52.0,
            location="Garage",
            status=SensorStatus.DANGER,
            timestamp="2024-01-01T10:05:00Z",
        ),
    ]


@pytest.fixture
def export_config(tmp_path: Path) -> ExportConfig:
    return ExportConfig(
        locale="en",
        display_timezone="UTC",
        documents_dir=tmp_path / "Documents",
        external_storage_dir=tmp_path / "ExternalStorage",
        downloads_dir=tmp_path / "Downloads",
        download_cleanup_delay_seconds=0.01,
    )


def make_probe(platform: str) -> PlatformProbe:
    return PlatformProbe(environ={PLATFORM_ENV_VAR: platform}, sys_platform=lambda: "linux")


@pytest.fixture
def web_probe() -> PlatformProbe:
    return make_probe("web")


@pytest.fixture
def android_probe() -> PlatformProbe:
    return make_probe("android")


@pytest.fixture
def ios_probe() -> PlatformProbe:
    return make_probe("ios")


class RecordingBrowserHost(BrowserHost):
    """Browser host that keeps downloads in memory."""

    def __init__(self, fail_click: bool = False):
        self.fail_click = fail_click
        self.objects: Dict[str, bytes] = {}
        self.anchors: List[DownloadAnchor] = []
        self.downloads: List[tuple] = []
        self.revoked: List[str] = []

    def create_object_url(self, data: bytes, mime_type: str) -> str:
        url = f"blob:test/{len(self.objects) + len(self.revoked)}"
        self.objects[url] = data
        return url

    def revoke_object_url(self, url: str) -> None:
        self.objects.pop(url, None)
        self.revoked.append(url)

    def attach_anchor(self, anchor: DownloadAnchor) -> None:
        self.anchors.append(anchor)

    def detach_anchor(self, anchor: DownloadAnchor) -> None:
        self.anchors.remove(anchor)

    async def click_anchor(self, anchor: DownloadAnchor) -> None:
        if self.fail_click:
            raise RuntimeError("popup blocked")
        self.downloads.append((anchor.download, self.objects[anchor.href]))


class ScriptedFilesystem(FilesystemAdapter):
    """Filesystem that fails for the listed directories."""

    def __init__(self, failures: Optional[Dict[StorageDirectory, Exception]] = None):
        self.failures = failures or {}
        self.writes: List[tuple] = []

    async def write_file(
        self,
        directory: StorageDirectory,
        filename: str,
        data: str,
        encoding: FileEncoding,
    ) -> str:
        self.writes.append((directory, filename, data, encoding))
        if directory in self.failures:
            raise self.failures[directory]
        return f"file:///storage/{directory.value}/{filename}"


@pytest.fixture
def browser_host() -> RecordingBrowserHost:
    return RecordingBrowserHost()


@pytest.fixture
def failing_browser_host() -> RecordingBrowserHost:
    return RecordingBrowserHost(fail_click=True)


@pytest.fixture
def scripted_filesystem():
    """Factory: scripted_filesystem({StorageDirectory.DOCUMENTS: OSError(...)})"""
    return ScriptedFilesystem
