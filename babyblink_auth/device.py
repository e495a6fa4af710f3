"""Best-effort device classification from User-Agent strings."""

from enum import StrEnum
from typing import TypeVar

from fastapi import Request  # type: ignore[import-untyped]
from pydantic import BaseModel

T = TypeVar("T")


class Browser(StrEnum):
    CHROME = "Chrome"
    FIREFOX = "Firefox"
    SAFARI = "Safari"
    EDGE = "Edge"
    UNKNOWN = "Unknown"


class OperatingSystem(StrEnum):
    WINDOWS = "Windows"
    MACOS = "macOS"
    LINUX = "Linux"
    ANDROID = "Android"
    IOS = "iOS"
    UNKNOWN = "Unknown"


class DeviceClass(StrEnum):
    MOBILE = "Mobile"
    TABLET = "Tablet"
    DESKTOP = "Desktop"


class DeviceInfo(BaseModel):
    """Device snapshot captured when a session is created."""

    user_agent: str | None = None
    ip_address: str | None = None
    browser: Browser = Browser.UNKNOWN
    os: OperatingSystem = OperatingSystem.UNKNOWN
    device: DeviceClass = DeviceClass.DESKTOP


# Ordered: Edge and Chrome user agents also mention Safari, Edge mentions Chrome.
_BROWSER_MARKERS: tuple[tuple[str, Browser], ...] = (
    ("Edg", Browser.EDGE),
    ("Firefox", Browser.FIREFOX),
    ("FxiOS", Browser.FIREFOX),
    ("Chrome", Browser.CHROME),
    ("CriOS", Browser.CHROME),
    ("Safari", Browser.SAFARI),
)

# Ordered: iOS agents say "like Mac OS X", Android agents say "Linux".
_OS_MARKERS: tuple[tuple[str, OperatingSystem], ...] = (
    ("Windows", OperatingSystem.WINDOWS),
    ("iPhone", OperatingSystem.IOS),
    ("iPad", OperatingSystem.IOS),
    ("iOS", OperatingSystem.IOS),
    ("Android", OperatingSystem.ANDROID),
    ("Mac OS", OperatingSystem.MACOS),
    ("Macintosh", OperatingSystem.MACOS),
    ("Linux", OperatingSystem.LINUX),
)


def _first_match(user_agent: str, markers: tuple[tuple[str, T], ...], default: T) -> T:
    for marker, value in markers:
        if marker in user_agent:
            return value
    return default


def parse_device_info(user_agent: str | None, ip_address: str | None) -> DeviceInfo:
    """
    Classify a User-Agent into browser, OS and device class.

    Never raises; anything unrecognised is tagged ``Unknown`` (device class
    defaults to ``Desktop``).

    Example:
        >>> info = parse_device_info("Mozilla/5.0 (Windows NT 10.0) Chrome/120.0", "1.2.3.4")
        >>> (info.browser, info.os, info.device)
        (<Browser.CHROME: 'Chrome'>, <OperatingSystem.WINDOWS: 'Windows'>, <DeviceClass.DESKTOP: 'Desktop'>)
    """
    if not user_agent:
        return DeviceInfo(user_agent=user_agent, ip_address=ip_address)

    if "iPad" in user_agent or "Tablet" in user_agent:
        device = DeviceClass.TABLET
    elif "Mobile" in user_agent or "iPhone" in user_agent:
        device = DeviceClass.MOBILE
    elif "Android" in user_agent:
        # Android browsers omit "Mobile" on tablets
        device = DeviceClass.TABLET
    else:
        device = DeviceClass.DESKTOP

    return DeviceInfo(
        user_agent=user_agent[:512],
        ip_address=ip_address,
        browser=_first_match(user_agent, _BROWSER_MARKERS, Browser.UNKNOWN),
        os=_first_match(user_agent, _OS_MARKERS, OperatingSystem.UNKNOWN),
        device=device,
    )


def client_ip(request: Request) -> str | None:
    """Extract best-effort client IP, honouring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def device_from_request(request: Request) -> DeviceInfo:
    """Build the device snapshot for the current request."""
    return parse_device_info(request.headers.get("user-agent"), client_ip(request))
