from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from lms_admin.core.enums import DeviceType

UNKNOWN_BROWSER = "Unknown Browser"
UNKNOWN_OS = "Unknown OS"

# Chrome must be tried before Safari: Chrome UAs also carry "Safari/x"
_BROWSERS = (
    ("Chrome", re.compile(r"Chrome/([0-9.]+)")),
    ("Firefox", re.compile(r"Firefox/([0-9.]+)")),
    ("Safari", re.compile(r"Safari/([0-9.]+)")),
    ("Edge", re.compile(r"Edge/([0-9.]+)")),
    ("Opera", re.compile(r"Opera/([0-9.]+)")),
)

_WINDOWS_VERSIONS = {
    "10.0": "Windows 10/11",
    "6.3": "Windows 8.1",
    "6.2": "Windows 8",
    "6.1": "Windows 7",
}

_WINDOWS = re.compile(r"Windows NT ([0-9.]+)")
_MACOS = re.compile(r"Mac OS X ([0-9_]+)")
_ANDROID = re.compile(r"Android ([0-9.]+)")
_IOS = re.compile(r"iPhone OS ([0-9_]+)")
_MOBILE = re.compile(r"Mobile|iPhone|Android")
_TABLET = re.compile(r"Tablet|iPad")


@dataclass(frozen=True)
class DeviceInfo:
    browser: str = UNKNOWN_BROWSER
    os: str = UNKNOWN_OS
    device_type: str = DeviceType.desktop.value

    @property
    def display(self) -> str:
        return f"{self.browser} on {self.os}"


def _browser(ua: str) -> str:
    for name, pattern in _BROWSERS:
        m = pattern.search(ua)
        if not m:
            continue
        if name == "Safari" and "Chrome" in ua:
            continue
        return f"{name} {m.group(1)}"
    return UNKNOWN_BROWSER


def _operating_system(ua: str) -> tuple[str, Optional[str]]:
    m = _WINDOWS.search(ua)
    if m:
        return _WINDOWS_VERSIONS.get(m.group(1), f"Windows {m.group(1)}"), None

    m = _MACOS.search(ua)
    if m:
        return f"macOS {m.group(1).replace('_', '.')}", None

    m = _ANDROID.search(ua)
    if m:
        return f"Android {m.group(1)}", DeviceType.mobile.value

    m = _IOS.search(ua)
    if m:
        return f"iOS {m.group(1).replace('_', '.')}", DeviceType.mobile.value

    if "iPad" in ua:
        return "iPadOS", DeviceType.tablet.value

    if "Linux" in ua:
        return "Linux", None

    return UNKNOWN_OS, None


def parse_user_agent(user_agent: Optional[str]) -> DeviceInfo:
    ua = user_agent or ""

    os_name, device_type = _operating_system(ua)

    if _MOBILE.search(ua):
        device_type = DeviceType.mobile.value
    elif _TABLET.search(ua):
        device_type = DeviceType.tablet.value

    return DeviceInfo(
        browser=_browser(ua),
        os=os_name,
        device_type=device_type or DeviceType.desktop.value,
    )
