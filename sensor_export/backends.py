"""
Sensor Export - Persistence Backends.

============================================================
PURPOSE
============================================================
Persist an encoded payload under a filename:
- Web: ephemeral object URL + invisible anchor click
- Native: filesystem write with a one-step fallback ladder

============================================================
FALLBACK LADDER (native)
============================================================

    Documents          <- primary
        |
     (fails)
        v
    ExternalStorage    <- exactly one fallback attempt
        |
     (fails)
        v
    FallbackStorageFailure carrying the PRIMARY message

============================================================
GUARANTEES
============================================================
- A persist call succeeds or fails as a unit
- Failures are raised as StorageFailure subclasses; the
  orchestrator turns them into failed results
- The web backend never waits for download completion

============================================================
"""

import asyncio
import base64
import contextlib
import logging
import os
import tempfile
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .exceptions import (
    DownloadFailure,
    FallbackStorageFailure,
    PrimaryStorageFailure,
    StorageFailure,
)
from .models import (
    EncodedPayload,
    ExportResult,
    FileEncoding,
    Platform,
    StorageDirectory,
)


logger = logging.getLogger(__name__)


DOWNLOADS_LABEL = "Downloads"


# ============================================================
# BASE BACKEND
# ============================================================

class PersistenceBackend(ABC):
    """Base class for persistence strategies."""

    @property
    @abstractmethod
    def platform(self) -> Platform:
        """Platform reported in results."""
        pass

    @abstractmethod
    async def persist(self, payload: EncodedPayload, filename: str) -> ExportResult:
        """Persist the payload, raising StorageFailure on failure."""
        pass


# ============================================================
# WEB DOWNLOAD
# ============================================================

@dataclass
class DownloadAnchor:
    """An invisible anchor pointing at an object URL."""
    href: str
    download: str
    hidden: bool = True


class BrowserHost(ABC):
    """The browser document operations a download needs."""

    @abstractmethod
    def create_object_url(self, data: bytes, mime_type: str) -> str:
        pass

    @abstractmethod
    def revoke_object_url(self, url: str) -> None:
        pass

    @abstractmethod
    def attach_anchor(self, anchor: DownloadAnchor) -> None:
        pass

    @abstractmethod
    def detach_anchor(self, anchor: DownloadAnchor) -> None:
        pass

    @abstractmethod
    async def click_anchor(self, anchor: DownloadAnchor) -> None:
        pass


class DownloadsFolderHost(BrowserHost):
    """
    Browser host that saves clicked downloads into a folder.

    Object URLs live in memory until revoked. Name clashes are
    resolved the way browsers do: 'name (1).ext'.
    """

    def __init__(self, downloads_dir: Path):
        self._downloads_dir = Path(downloads_dir)
        self._objects: Dict[str, Tuple[bytes, str]] = {}
        self._anchors: List[DownloadAnchor] = []

    @property
    def open_urls(self) -> List[str]:
        return list(self._objects)

    @property
    def attached_anchors(self) -> List[DownloadAnchor]:
        return list(self._anchors)

    def create_object_url(self, data: bytes, mime_type: str) -> str:
        url = f"blob:sensor-export/{uuid.uuid4()}"
        self._objects[url] = (data, mime_type)
        return url

    def revoke_object_url(self, url: str) -> None:
        self._objects.pop(url, None)

    def attach_anchor(self, anchor: DownloadAnchor) -> None:
        self._anchors.append(anchor)

    def detach_anchor(self, anchor: DownloadAnchor) -> None:
        if anchor in self._anchors:
            self._anchors.remove(anchor)

    async def click_anchor(self, anchor: DownloadAnchor) -> None:
        if anchor not in self._anchors:
            raise RuntimeError("anchor is not attached to the document")
        if anchor.href not in self._objects:
            raise RuntimeError(f"object URL {anchor.href} was revoked")
        data, _ = self._objects[anchor.href]
        await asyncio.to_thread(self._save, anchor.download, data)

    def _save(self, filename: str, data: bytes) -> Path:
        self._downloads_dir.mkdir(parents=True, exist_ok=True)
        target = self._downloads_dir / filename
        stem, suffix = target.stem, target.suffix
        counter = 1
        while target.exists():
            target = self._downloads_dir / f"{stem} ({counter}){suffix}"
            counter += 1
        target.write_bytes(data)
        logger.debug(f"Browser download saved to {target}")
        return target


class WebDownloadBackend(PersistenceBackend):
    """Triggers a browser download and schedules resource cleanup."""

    def __init__(self, host: BrowserHost, cleanup_delay_seconds: float = 0.1):
        self._host = host
        self._cleanup_delay = cleanup_delay_seconds

    @property
    def platform(self) -> Platform:
        return Platform.WEB

    async def persist(self, payload: EncodedPayload, filename: str) -> ExportResult:
        try:
            url = self._host.create_object_url(payload.to_bytes(), payload.mime_type)
        except Exception as e:
            raise DownloadFailure(
                f"Could not prepare download of {filename}: {e}",
                filename=filename,
                cause=e,
            ) from e

        anchor = DownloadAnchor(href=url, download=filename)
        try:
            self._host.attach_anchor(anchor)
            await self._host.click_anchor(anchor)
        except Exception as e:
            self._cleanup(anchor, url)
            raise DownloadFailure(
                f"Download of {filename} failed: {e}",
                filename=filename,
                cause=e,
            ) from e

        asyncio.get_running_loop().call_later(self._cleanup_delay, self._cleanup, anchor, url)

        return ExportResult(
            success=True,
            message=f"Downloaded {filename}",
            platform=Platform.WEB,
            filename=filename,
            directory_label=DOWNLOADS_LABEL,
        )

    def _cleanup(self, anchor: DownloadAnchor, url: str) -> None:
        try:
            self._host.detach_anchor(anchor)
            self._host.revoke_object_url(url)
        except Exception as e:
            logger.warning(f"Download cleanup for {anchor.download} failed: {e}")


# ============================================================
# NATIVE FILESYSTEM
# ============================================================

class FilesystemAdapter(ABC):
    """Native filesystem write primitive."""

    @abstractmethod
    async def write_file(
        self,
        directory: StorageDirectory,
        filename: str,
        data: str,
        encoding: FileEncoding,
    ) -> str:
        """Write data and return the file's URI."""
        pass


class LocalFilesystem(FilesystemAdapter):
    """
    Filesystem adapter over local directories.

    Writes go to a temporary file that is renamed into place, so
    a failed write never leaves a partial file behind.
    """

    def __init__(self, roots: Mapping[StorageDirectory, Path]):
        self._roots = {directory: Path(root) for directory, root in roots.items()}

    async def write_file(
        self,
        directory: StorageDirectory,
        filename: str,
        data: str,
        encoding: FileEncoding,
    ) -> str:
        return await asyncio.to_thread(self._write, directory, filename, data, encoding)

    def _write(
        self,
        directory: StorageDirectory,
        filename: str,
        data: str,
        encoding: FileEncoding,
    ) -> str:
        if directory not in self._roots:
            raise FileNotFoundError(f"No root configured for {directory.value}")
        if Path(filename).name != filename:
            raise ValueError(f"Invalid filename: {filename!r}")

        if encoding is FileEncoding.BASE64:
            raw = base64.b64decode(data, validate=True)
        else:
            raw = data.encode("utf-8")

        root = self._roots[directory]
        root.mkdir(parents=True, exist_ok=True)
        target = root / filename

        fd, tmp_path = tempfile.mkstemp(dir=root, prefix=f".{filename}.", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(raw)
            os.replace(tmp_path, target)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_path)
            raise

        return target.resolve().as_uri()


class NativeFilesystemBackend(PersistenceBackend):
    """Writes to the primary directory, falling back once on failure."""

    def __init__(
        self,
        filesystem: FilesystemAdapter,
        platform: Platform,
        ladder: Sequence[StorageDirectory] = (
            StorageDirectory.DOCUMENTS,
            StorageDirectory.EXTERNAL_STORAGE,
        ),
    ):
        if len(ladder) != 2:
            raise ValueError("Fallback ladder needs a primary and a fallback directory")
        self._fs = filesystem
        self._platform = platform
        self._primary, self._fallback = ladder

    @property
    def platform(self) -> Platform:
        return self._platform

    async def persist(self, payload: EncodedPayload, filename: str) -> ExportResult:
        data, encoding = self._prepare(payload)

        try:
            uri = await self._write(self._primary, filename, data, encoding, PrimaryStorageFailure)
            directory = self._primary
        except PrimaryStorageFailure as primary_error:
            logger.warning(
                f"{primary_error.message}; retrying in {self._fallback.value}"
            )
            try:
                uri = await self._write(self._fallback, filename, data, encoding, StorageFailure)
            except StorageFailure as fallback_error:
                logger.error(f"Fallback write failed: {fallback_error.message}")
                raise FallbackStorageFailure(primary_error, fallback_error) from primary_error
            directory = self._fallback

        logger.info(f"Saved {filename} to {directory.value}: {uri}")

        return ExportResult(
            success=True,
            message=f"File saved to {directory.value}",
            platform=self._platform,
            filename=filename,
            file_path=uri,
            directory_label=directory.value,
        )

    @staticmethod
    def _prepare(payload: EncodedPayload) -> Tuple[str, FileEncoding]:
        """Binary payloads are written as base64 data, text as UTF-8."""
        if payload.is_binary:
            return payload.to_base64(), FileEncoding.BASE64
        if isinstance(payload.content, bytes):
            return payload.content.decode("utf-8"), FileEncoding.UTF8
        return payload.content, FileEncoding.UTF8

    async def _write(
        self,
        directory: StorageDirectory,
        filename: str,
        data: str,
        encoding: FileEncoding,
        failure_cls: type,
    ) -> str:
        try:
            uri = await self._fs.write_file(directory, filename, data, encoding)
        except Exception as e:
            raise failure_cls(
                f"Failed to write {filename} to {directory.value}: {e}",
                filename=filename,
                directory=directory.value,
                cause=e,
            ) from e
        if not uri:
            raise failure_cls(
                f"Writing {filename} to {directory.value} returned no file path",
                filename=filename,
                directory=directory.value,
            )
        return uri


# ============================================================
# FACTORY
# ============================================================

def create_backend(
    platform: Platform,
    browser_host: Optional[BrowserHost] = None,
    filesystem: Optional[FilesystemAdapter] = None,
    cleanup_delay_seconds: float = 0.1,
) -> PersistenceBackend:
    """Pick the backend matching the platform."""
    if platform.is_native:
        if filesystem is None:
            raise ValueError("Native platform requires a filesystem adapter")
        return NativeFilesystemBackend(filesystem, platform)
    if browser_host is None:
        raise ValueError("Web platform requires a browser host")
    return WebDownloadBackend(browser_host, cleanup_delay_seconds)
