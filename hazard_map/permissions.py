# permissions.py — location permission gates, one per platform family
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from .errors import HazardMapError, SettingsUnavailable
from .notices import NoticeAction

logger = logging.getLogger(__name__)


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    NEVER_ASK_AGAIN = "never_ask_again"
    RESTRICTED = "restricted"
    DISABLED = "disabled"


# Android 6.0 (API 23) introduced runtime permissions
RUNTIME_PERMISSION_MIN_ANDROID = 6


class PermissionGate(ABC):
    """Resolves the platform's location permission into a yes/no capability.

    Every call may prompt (at most once) and nothing is cached between calls.
    """

    def __init__(self, device, notifier):
        self.device = device
        self.notifier = notifier

    @abstractmethod
    async def check_and_request(self) -> bool:
        ...


class LegacyPermissionGate(PermissionGate):
    """Platforms that grant location at install time."""

    async def check_and_request(self) -> bool:
        return True


class PromptPermissionGate(PermissionGate):
    DENIED_MESSAGE = "Location permission denied by user."
    REVOKED_MESSAGE = "Location permission revoked by user."

    async def check_and_request(self) -> bool:
        try:
            if await self.device.check_permission():
                return True
            status = await self.device.request_permission()
        except HazardMapError as e:
            logger.warning("location permission request failed: %s", e)
            return False

        if status == PermissionStatus.GRANTED:
            return True
        if status == PermissionStatus.DENIED:
            self.notifier.toast(self.DENIED_MESSAGE)
        elif status == PermissionStatus.NEVER_ASK_AGAIN:
            self.notifier.toast(self.REVOKED_MESSAGE)
        else:
            logger.warning("unexpected permission status %r", status)
        return False


class AuthorizationPermissionGate(PermissionGate):
    DENIED_MESSAGE = "Location permission denied"
    DISABLED_MESSAGE = "Turn on Location Services to allow to determine your location."
    SETTINGS_FAILED_MESSAGE = "Unable to open settings"

    async def check_and_request(self) -> bool:
        try:
            status = await self.device.request_authorization()
        except HazardMapError as e:
            logger.warning("location authorization failed: %s", e)
            return False

        if status == PermissionStatus.GRANTED:
            return True
        if status == PermissionStatus.DENIED:
            self.notifier.alert(self.DENIED_MESSAGE)
        elif status == PermissionStatus.DISABLED:
            self.notifier.alert(self.DISABLED_MESSAGE, actions=(
                NoticeAction("Go to Settings", self.open_settings),
                NoticeAction("Don't Use Location"),
            ))
        else:
            logger.info("location authorization not available: %s", status)
        return False

    async def open_settings(self) -> None:
        try:
            await self.device.open_settings()
        except SettingsUnavailable as e:
            logger.info("open settings failed: %s", e)
            self.notifier.alert(self.SETTINGS_FAILED_MESSAGE)


def select_permission_gate(platform: str, version: Optional[int], device, notifier) -> PermissionGate:
    """Pick the gate for this platform once, at startup."""
    if platform == "android":
        if version is not None and version < RUNTIME_PERMISSION_MIN_ANDROID:
            return LegacyPermissionGate(device, notifier)
        return PromptPermissionGate(device, notifier)
    return AuthorizationPermissionGate(device, notifier)
