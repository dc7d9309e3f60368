"""
Visual Capture - User Agent Parsing

Browser and OS detection from a navigator.userAgent string. Only the
fields the capture pipeline branches on are extracted.
"""

import re
from dataclasses import dataclass
from typing import Optional


class BrowserNames:
    EDGE = "Edge"
    IE = "IE"
    FIREFOX = "Firefox"
    CHROME = "Chrome"
    SAFARI = "Safari"


class OSNames:
    WINDOWS = "Windows"
    MACINTOSH = "Mac OS X"
    IOS = "iOS"
    ANDROID = "Android"
    LINUX = "Linux"
    CHROME_OS = "Chrome OS"


# Order matters: Edge and Chrome UAs also contain "Safari", Edge also "Chrome"
_BROWSER_PATTERNS = [
    (BrowserNames.EDGE, re.compile(r"(?:Edge|Edg|EdgA|EdgiOS)/(\d+)(?:\.(\d+))?")),
    (BrowserNames.FIREFOX, re.compile(r"(?:Firefox|FxiOS)/(\d+)(?:\.(\d+))?")),
    (BrowserNames.CHROME, re.compile(r"(?:Chrome|CriOS)/(\d+)(?:\.(\d+))?")),
    (BrowserNames.SAFARI, re.compile(r"Version/(\d+)(?:\.(\d+))?.*Safari/")),
    (BrowserNames.IE, re.compile(r"(?:MSIE |rv:)(\d+)(?:\.(\d+))?.*(?:Trident|\))")),
]

_OS_PATTERNS = [
    (OSNames.IOS, re.compile(r"(?:iPhone|iPad|iPod).*?OS (\d+)(?:_(\d+))?")),
    (OSNames.ANDROID, re.compile(r"Android(?: (\d+)(?:\.(\d+))?)?")),
    (OSNames.WINDOWS, re.compile(r"Windows NT (\d+)(?:\.(\d+))?")),
    (OSNames.MACINTOSH, re.compile(r"Mac OS X (\d+)(?:[_.](\d+))?")),
    (OSNames.CHROME_OS, re.compile(r"CrOS")),
    (OSNames.LINUX, re.compile(r"Linux")),
]


@dataclass
class UserAgent:
    """Parsed user agent"""
    browser: Optional[str] = None
    browser_major_version: Optional[str] = None
    browser_minor_version: Optional[str] = None
    os: Optional[str] = None
    os_major_version: Optional[str] = None
    os_minor_version: Optional[str] = None

    @property
    def browser_major(self) -> int:
        """Major browser version as an int, -1 when unknown"""
        try:
            return int(self.browser_major_version)
        except (TypeError, ValueError):
            return -1


def parse_user_agent(user_agent: Optional[str]) -> UserAgent:
    result = UserAgent()
    if not user_agent:
        return result

    for name, pattern in _BROWSER_PATTERNS:
        match = pattern.search(user_agent)
        if match:
            result.browser = name
            result.browser_major_version = match.group(1)
            result.browser_minor_version = match.group(2)
            break

    for name, pattern in _OS_PATTERNS:
        match = pattern.search(user_agent)
        if match:
            result.os = name
            groups = match.groups()
            if groups:
                result.os_major_version = groups[0]
                result.os_minor_version = groups[1] if len(groups) > 1 else None
            break

    return result
