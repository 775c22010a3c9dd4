"""
User-Agent Classification

Turns a raw User-Agent header into the device / browser / os labels stored
on each click event.
"""

from dataclasses import dataclass
from typing import Optional

from user_agents import parse

UNKNOWN = "Unknown"


@dataclass(frozen=True)
class UserAgentInfo:
    device: str = "desktop"
    browser: str = UNKNOWN
    os: str = UNKNOWN


def _family(value: Optional[str]) -> str:
    # ua-parser reports unrecognised families as "Other"
    if not value or value == "Other":
        return UNKNOWN
    return value


def classify_user_agent(user_agent: Optional[str]) -> UserAgentInfo:
    """
    Classify a User-Agent string.

    device is one of mobile, tablet, bot or desktop (the default, also used
    for empty or unrecognised strings).
    """
    if not user_agent:
        return UserAgentInfo()

    parsed = parse(user_agent)
    if parsed.is_bot:
        device = "bot"
    elif parsed.is_tablet:
        device = "tablet"
    elif parsed.is_mobile:
        device = "mobile"
    else:
        device = "desktop"

    return UserAgentInfo(
        device=device,
        browser=_family(parsed.browser.family),
        os=_family(parsed.os.family),
    )
