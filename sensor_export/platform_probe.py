"""
Sensor Export - Platform Capability Probe.

Resolves, on every call, whether the pipeline runs in a sandboxed
web runtime or a native shell with filesystem access. Nothing is
cached so the probe can be re-pointed in tests.
"""

import logging
import os
import sys
from typing import Callable, Mapping, Optional

from .config import PLATFORM_ENV_VAR
from .models import Platform


logger = logging.getLogger(__name__)


class PlatformProbe:
    """
    Stateless platform query.

    Resolution order: the SENSOR_EXPORT_PLATFORM override, then the
    interpreter's sys.platform ('android', 'ios'), else web.
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        sys_platform: Optional[Callable[[], str]] = None,
    ):
        self._environ = environ
        self._sys_platform = sys_platform or (lambda: sys.platform)

    def platform_name(self) -> Platform:
        environ = self._environ if self._environ is not None else os.environ
        override = environ.get(PLATFORM_ENV_VAR, "").strip().lower()
        if override:
            try:
                return Platform(override)
            except ValueError:
                logger.warning(f"Ignoring unknown {PLATFORM_ENV_VAR}={override!r}")

        host = self._sys_platform()
        if host == "android":
            return Platform.ANDROID
        if host == "ios":
            return Platform.IOS
        return Platform.WEB

    def is_native(self) -> bool:
        return self.platform_name().is_native
