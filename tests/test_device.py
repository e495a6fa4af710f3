"""Tests for User-Agent classification."""

import pytest

from babyblink_auth.device import (
    Browser,
    DeviceClass,
    OperatingSystem,
    parse_device_info,
)
from tests.conftest import CHROME_WINDOWS_UA

IPHONE_SAFARI_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
IPAD_SAFARI_UA = (
    "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
ANDROID_PHONE_UA = (
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
)
ANDROID_TABLET_UA = (
    "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
EDGE_WINDOWS_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0"
)
FIREFOX_LINUX_UA = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"
SAFARI_MAC_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15"
)


class TestParseDeviceInfo:
    """Test suite for parse_device_info."""

    @pytest.mark.parametrize(
        ("user_agent", "browser", "os", "device"),
        [
            (CHROME_WINDOWS_UA, Browser.CHROME, OperatingSystem.WINDOWS, DeviceClass.DESKTOP),
            (EDGE_WINDOWS_UA, Browser.EDGE, OperatingSystem.WINDOWS, DeviceClass.DESKTOP),
            (FIREFOX_LINUX_UA, Browser.FIREFOX, OperatingSystem.LINUX, DeviceClass.DESKTOP),
            (SAFARI_MAC_UA, Browser.SAFARI, OperatingSystem.MACOS, DeviceClass.DESKTOP),
            (IPHONE_SAFARI_UA, Browser.SAFARI, OperatingSystem.IOS, DeviceClass.MOBILE),
            (IPAD_SAFARI_UA, Browser.SAFARI, OperatingSystem.IOS, DeviceClass.TABLET),
            (ANDROID_PHONE_UA, Browser.CHROME, OperatingSystem.ANDROID, DeviceClass.MOBILE),
            (ANDROID_TABLET_UA, Browser.CHROME, OperatingSystem.ANDROID, DeviceClass.TABLET),
        ],
    )
    def test_classification(
        self,
        user_agent: str,
        browser: Browser,
        os: OperatingSystem,
        device: DeviceClass,
    ) -> None:
        info = parse_device_info(user_agent, "198.51.100.1")

        assert info.browser == browser
        assert info.os == os
        assert info.device == device
        assert info.ip_address == "198.51.100.1"

    def test_missing_user_agent(self) -> None:
        info = parse_device_info(None, None)

        assert info.browser == Browser.UNKNOWN
        assert info.os == OperatingSystem.UNKNOWN
        assert info.device == DeviceClass.DESKTOP

    def test_unrecognised_user_agent(self) -> None:
        """Never raises on odd input."""
        info = parse_device_info("curl/8.4.0", "10.0.0.1")

        assert info.browser == Browser.UNKNOWN
        assert info.os == OperatingSystem.UNKNOWN
        assert info.user_agent == "curl/8.4.0"

    def test_long_user_agent_is_truncated(self) -> None:
        info = parse_device_info("X" * 2000, None)

        assert info.user_agent is not None
        assert len(info.user_agent) == 512

    def test_labels_are_display_strings(self) -> None:
        info = parse_device_info(IPHONE_SAFARI_UA, None)

        assert str(info.browser) == "Safari"
        assert str(info.os) == "iOS"
        assert str(info.device) == "Mobile"
