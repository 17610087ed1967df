"""Coarse browser / OS / device classification for access logs."""

from __future__ import annotations

import re
from typing import Dict, Optional

# Order matters: Edge and Opera also advertise Chrome, Chrome advertises Safari.
_BROWSERS = (
    ("Edge", re.compile(r"Edg(e|A|iOS)?/", re.I)),
    ("Opera", re.compile(r"OPR/|Opera", re.I)),
    ("Firefox", re.compile(r"Firefox/|FxiOS/", re.I)),
    ("Chrome", re.compile(r"Chrome/|CriOS/", re.I)),
    ("Safari", re.compile(r"Safari/", re.I)),
    ("curl", re.compile(r"^curl/", re.I)),
)

_SYSTEMS = (
    ("Android", re.compile(r"Android", re.I)),
    ("iOS", re.compile(r"iPhone|iPad|iPod", re.I)),
    ("Windows", re.compile(r"Windows", re.I)),
    ("macOS", re.compile(r"Mac OS X|Macintosh", re.I)),
    ("Linux", re.compile(r"Linux|X11", re.I)),
)

_TABLET = re.compile(r"iPad|Tablet|(Android(?!.*Mobile))", re.I)
_MOBILE = re.compile(r"Mobi|iPhone|iPod|Android.*Mobile", re.I)
_TV = re.compile(r"SmartTV|SMART-TV|AppleTV|GoogleTV", re.I)
_BOT = re.compile(r"bot|crawler|spider", re.I)


def _first_match(table, user_agent: str) -> str:
    for name, pattern in table:
        if pattern.search(user_agent):
            return name
    return "Other"


def parse_user_agent(user_agent: Optional[str]) -> Dict[str, str]:
    """Return ``browser``, ``operating_system`` and ``device_type`` for a UA string."""
    ua = (user_agent or "").strip()
    if not ua:
        return {"browser": "Unknown", "operating_system": "Unknown", "device_type": "Unknown"}

    if _BOT.search(ua):
        device = "Bot"
    elif _TV.search(ua):
        device = "SmartTV"
    elif _TABLET.search(ua):
        device = "Tablet"
    elif _MOBILE.search(ua):
        device = "Mobile"
    else:
        device = "Desktop"

    return {
        "browser": _first_match(_BROWSERS, ua),
        "operating_system": _first_match(_SYSTEMS, ua),
        "device_type": device,
    }
