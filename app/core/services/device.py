"""
Best-effort device classification from a user-agent string.

Used for display and for the exact-match same-device check only; it is a
heuristic and is never treated as a security signal.
"""

from dataclasses import dataclass

from app.core.enums import DeviceType


__all__ = ["DeviceFingerprint", "DeviceInfo", "parse_user_agent"]

UNKNOWN = "unknown"

_TABLET_MARKERS = ("ipad",)
_MOBILE_MARKERS = (
    "mobile",
    "android",
    "iphone",
    "ipad",
    "ipod",
    "blackberry",
    "windows phone",
)

# First match wins
_PLATFORMS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("windows",), "Windows"),
    (("mac os",), "macOS"),
    (("linux",), "Linux"),
    (("android",), "Android"),
    (("ios", "iphone", "ipad"), "iOS"),
)

# (marker, excluded marker, name); first match wins
_BROWSERS: tuple[tuple[str, str | None, str], ...] = (
    ("chrome", "edg", "Chrome"),
    ("firefox", None, "Firefox"),
    ("safari", "chrome", "Safari"),
    ("edg", None, "Edge"),
    ("opera", None, "Opera"),
)


@dataclass(frozen=True)
class DeviceFingerprint:
    """The ``(user_agent, ip_address)`` pair compared for same-device logins."""

    user_agent: str
    ip_address: str

    def matches(self, user_agent: str | None, ip_address: str | None) -> bool:
        return self.user_agent == (user_agent or "") and self.ip_address == (
            ip_address or ""
        )


@dataclass(frozen=True)
class DeviceInfo:
    user_agent: str
    platform: str
    browser: str
    device_type: DeviceType


def _device_type(ua: str) -> DeviceType:
    if any(marker in ua for marker in _TABLET_MARKERS):
        return DeviceType.TABLET
    if any(marker in ua for marker in _MOBILE_MARKERS):
        return DeviceType.MOBILE
    return DeviceType.DESKTOP


def _platform(ua: str) -> str:
    for markers, name in _PLATFORMS:
        if any(marker in ua for marker in markers):
            return name
    return UNKNOWN


def _browser(ua: str) -> str:
    for marker, excluded, name in _BROWSERS:
        if marker in ua and (excluded is None or excluded not in ua):
            return name
    return UNKNOWN


def parse_user_agent(user_agent: str | None) -> DeviceInfo:
    """
    Classify a user agent into device type, platform and browser.

    Matching is case-insensitive substring search. Tablet wins over mobile
    (iPad user agents carry both markers); anything else is desktop.

    Examples:
        >>> info = parse_user_agent("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) ... Safari/604.1")
        >>> info.device_type, info.browser
        (<DeviceType.MOBILE: 'mobile'>, 'Safari')
    """
    raw = user_agent or ""
    ua = raw.lower()
    return DeviceInfo(
        user_agent=raw,
        platform=_platform(ua),
        browser=_browser(ua),
        device_type=_device_type(ua),
    )
