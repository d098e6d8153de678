"""
Export Notification Service.

============================================================
PURPOSE
============================================================
Tell the user a file was saved, through the platform's local
notification dispatcher.

PRINCIPLES:
- Notification-only; the export result never depends on it
- Web has no native notifications: skipped, not failed
- Permission is requested once, lazily, before sending

============================================================
"""

import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from .config import ExportConfig, get_config
from .locales import DEFAULT_LOCALE, translate
from .platform_probe import PlatformProbe


logger = logging.getLogger(__name__)


# ============================================================
# MODELS
# ============================================================

class NotificationReason(Enum):
    """Why a notification was or was not sent."""
    SENT = "sent"
    WEB_PLATFORM = "web_platform"
    PERMISSION_DENIED = "permission_denied"
    DISABLED = "disabled"
    ERROR = "error"


@dataclass
class NotificationResult:
    """Outcome of a notification attempt."""
    success: bool
    reason: NotificationReason
    message: str
    notification_id: Optional[int] = None


@dataclass
class LocalNotification:
    """A notification handed to the dispatcher."""
    id: int
    title: str
    body: str
    sound: str = "default"
    auto_cancel: bool = True
    extra: Dict[str, Any] = field(default_factory=dict)


# ============================================================
# INTERFACES
# ============================================================

class ExportNotifier(Protocol):
    """What the orchestrator calls after a successful export."""

    async def show_export_success(
        self,
        file_type: str,
        filename: str,
        folder: str,
    ) -> Any:
        ...


class NotificationDispatcher(ABC):
    """Platform local-notification primitive."""

    @abstractmethod
    async def check_permission(self) -> bool:
        pass

    @abstractmethod
    async def request_permission(self) -> bool:
        pass

    @abstractmethod
    async def schedule(self, notification: LocalNotification) -> None:
        pass


# ============================================================
# SERVICE
# ============================================================

class NotificationService:
    """
    Sends export notifications through a dispatcher.

    Never raises: every outcome is reported as a NotificationResult.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        probe: Optional[PlatformProbe] = None,
        locale: str = DEFAULT_LOCALE,
        enabled: bool = True,
    ):
        self._dispatcher = dispatcher
        self._probe = probe or PlatformProbe()
        self._locale = locale
        self._enabled = enabled
        self._ids = itertools.count(1)
        self._permission_granted = False

    @property
    def permission_granted(self) -> bool:
        """Last known permission state."""
        return self._permission_granted

    async def check_permission(self) -> bool:
        if not self._probe.is_native():
            return True
        try:
            self._permission_granted = bool(await self._dispatcher.check_permission())
        except Exception as e:
            logger.error(f"Error checking notification permission: {e}")
            return False
        return self._permission_granted

    async def request_permission(self) -> bool:
        if not self._probe.is_native():
            return True
        if await self.check_permission():
            return True
        try:
            self._permission_granted = bool(await self._dispatcher.request_permission())
        except Exception as e:
            logger.error(f"Error requesting notification permission: {e}")
            return False
        logger.info(f"Notification permission granted={self._permission_granted}")
        return self._permission_granted

    async def show_export_success(
        self,
        file_type: str,
        filename: str,
        folder: str = "Documents",
    ) -> NotificationResult:
        """Notify that an exported file was saved."""
        return await self._send(
            translate("EXPORT_SUCCESS_TITLE", self._locale),
            translate(
                "EXPORT_SUCCESS_BODY",
                self._locale,
                file_type=file_type,
                filename=filename,
                folder=folder,
            ),
        )

    async def show_success(self, title: str, body: str) -> NotificationResult:
        return await self._send(title, body)

    async def show_error(self, title: str, body: str) -> NotificationResult:
        # Errors are not worth a permission prompt
        return await self._send(f"❌ {title}", body, prompt=False)

    async def _send(self, title: str, body: str, prompt: bool = True) -> NotificationResult:
        if not self._enabled:
            return NotificationResult(
                success=False,
                reason=NotificationReason.DISABLED,
                message="Notifications are disabled in settings",
            )

        if not self._probe.is_native():
            logger.debug("Web platform, skipping native notification")
            return NotificationResult(
                success=False,
                reason=NotificationReason.WEB_PLATFORM,
                message="Native notifications not available on web",
            )

        granted = await self.check_permission()
        if not granted and prompt:
            granted = await self.request_permission()
        if not granted:
            return NotificationResult(
                success=False,
                reason=NotificationReason.PERMISSION_DENIED,
                message="Notification permission denied by user",
            )

        notification = LocalNotification(id=next(self._ids), title=title, body=body)
        try:
            await self._dispatcher.schedule(notification)
        except Exception as e:
            logger.error(f"Error sending notification: {e}")
            return NotificationResult(
                success=False,
                reason=NotificationReason.ERROR,
                message=f"Failed to send notification: {e}",
            )

        logger.info(f"Notification {notification.id} sent: {title}")
        return NotificationResult(
            success=True,
            reason=NotificationReason.SENT,
            message="Notification sent successfully",
            notification_id=notification.id,
        )


def create_notification_service(
    dispatcher: NotificationDispatcher,
    config: Optional[ExportConfig] = None,
    probe: Optional[PlatformProbe] = None,
) -> NotificationService:
    """Create a notification service honouring the locale and toggle in config."""
    config = config or get_config()
    return NotificationService(
        dispatcher,
        probe=probe,
        locale=config.locale,
        enabled=config.notifications_enabled,
    )
