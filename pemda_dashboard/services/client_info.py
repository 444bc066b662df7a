"""Coarse client descriptions for audit metadata and the sessions page."""

from typing import Optional

LOCAL_LOCATION = "Yogyakarta (Local)"
UNKNOWN_LOCATION = "Unknown"

# Order matters: Edge and Opera also advertise Chrome, Chrome advertises Safari.
_BROWSERS = (
    ("Edg/", "Edge"),
    ("OPR/", "Opera"),
    ("Firefox/", "Firefox"),
    ("Chrome/", "Chrome"),
    ("Safari/", "Safari"),
)

_OPERATING_SYSTEMS = (
    ("Windows", "Windows"),
    ("Android", "Android"),
    ("iPhone", "iOS"),
    ("iPad", "iOS"),
    ("Mac OS X", "macOS"),
    ("Linux", "Linux"),
)


def describe_location(ip: Optional[str]) -> str:
    """Loopback and private LAN addresses are the office network."""
    ip = ip or ""
    if ip in ("::1", "127.0.0.1") or ip.startswith("10.") or ip.startswith("192.168."):
        return LOCAL_LOCATION
    return UNKNOWN_LOCATION


def describe_user_agent(user_agent: Optional[str]) -> dict:
    """Best-effort ``{browser, os, device}`` from a User-Agent header."""
    ua = user_agent or ""

    browser = next((name for token, name in _BROWSERS if token in ua), "Unknown")
    os_name = next((name for token, name in _OPERATING_SYSTEMS if token in ua), "Unknown")

    if "iPad" in ua or "Tablet" in ua:
        device = "Tablet"
    elif "Mobile" in ua or "iPhone" in ua:
        device = "Mobile"
    else:
        device = "Desktop"

    return {"browser": browser, "os": os_name, "device": device}
