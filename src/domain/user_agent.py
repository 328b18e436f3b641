"""
Best-effort user-agent classification by substring matching.
"""

from typing import NamedTuple, Optional

UNKNOWN = "unknown"


class DeviceInfo(NamedTuple):
    device_type: str
    browser: str
    os: str


def _device_type(ua: str) -> str:
    if "tablet" in ua or "ipad" in ua:
        return "tablet"
    if "mobile" in ua or "iphone" in ua:
        return "mobile"
    return "desktop"


def _browser(ua: str) -> str:
    # Edge and Chrome both advertise "chrome"; Chrome advertises "safari".
    if "edg" in ua:
        return "Edge"
    if "firefox" in ua or "fxios" in ua:
        return "Firefox"
    if "chrome" in ua or "crios" in ua:
        return "Chrome"
    if "safari" in ua:
        return "Safari"
    return UNKNOWN


def _os(ua: str) -> str:
    if "windows" in ua:
        return "Windows"
    if "android" in ua:
        return "Android"
    if "iphone" in ua or "ipad" in ua or "ios" in ua:
        return "iOS"
    if "mac os" in ua or "macintosh" in ua:
        return "macOS"
    if "linux" in ua:
        return "Linux"
    return UNKNOWN


def parse_user_agent(user_agent: Optional[str]) -> DeviceInfo:
    if not user_agent:
        return DeviceInfo(UNKNOWN, UNKNOWN, UNKNOWN)

    ua = user_agent.lower()
    return DeviceInfo(_device_type(ua), _browser(ua), _os(ua))
