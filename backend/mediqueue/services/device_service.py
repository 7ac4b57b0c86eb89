"""
Device fingerprinting for check-in requests.
"""

from typing import Optional

from ..models.check_in import DeviceInfo

# Order matters: Edge and Chrome user agents also mention Safari
BROWSERS = (("Edg", "Edge"), ("Firefox", "Firefox"), ("Chrome", "Chrome"), ("Safari", "Safari"))
SYSTEMS = (
    ("Android", "Android"),
    ("iPhone", "iOS"),
    ("iPad", "iOS"),
    ("Windows", "Windows"),
    ("Mac", "macOS"),
    ("Linux", "Linux"),
)


def _first_match(user_agent: str, table) -> str:
    for marker, name in table:
        if marker in user_agent:
            return name
    return "Unknown"


def parse_user_agent(user_agent: Optional[str], ip: Optional[str] = None) -> DeviceInfo:
    """Classify browser, OS and form factor from a User-Agent header."""
    user_agent = user_agent or "Unknown"
    if "Tablet" in user_agent or "iPad" in user_agent:
        device = "Tablet"
    elif "Mobile" in user_agent:
        device = "Mobile"
    else:
        device = "Desktop"

    return DeviceInfo(
        ip=ip.replace("::ffff:", "") if ip else None,
        user_agent=user_agent,
        browser=_first_match(user_agent, BROWSERS),
        os=_first_match(user_agent, SYSTEMS),
        device=device
    )
