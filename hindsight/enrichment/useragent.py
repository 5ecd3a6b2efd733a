"""User-agent classification backed by the ``user-agents`` library."""

from __future__ import annotations

import dataclasses as dc
import enum
import typing as typ

from user_agents import parse

from hindsight.events.models import NameAndVersion

if typ.TYPE_CHECKING:
    from user_agents.parsers import UserAgent


class Device(enum.StrEnum):
    """Coarse device class stored with each event."""

    BOT = "bot"
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"
    UNKNOWN = "unknown"


@dc.dataclass(frozen=True, slots=True)
class UserAgentInfo:
    """Browser, operating system, and device decoded from a user agent."""

    browser: NameAndVersion
    os: NameAndVersion
    device: Device


def decode_user_agent(user_agent: str) -> UserAgentInfo:
    """Classify a raw ``User-Agent`` header value."""
    parsed = parse(user_agent)
    return UserAgentInfo(
        browser=NameAndVersion(
            name=parsed.browser.family,
            version=parsed.browser.version_string,
        ),
        os=NameAndVersion(
            name=parsed.os.family,
            version=parsed.os.version_string,
        ),
        device=_device_for(parsed),
    )


def _device_for(parsed: UserAgent) -> Device:
    # Bots are checked first; crawlers often claim a mobile platform too.
    if parsed.is_bot:
        return Device.BOT
    if parsed.is_tablet:
        return Device.TABLET
    if parsed.is_mobile:
        return Device.MOBILE
    if parsed.is_pc:
        return Device.DESKTOP
    return Device.UNKNOWN
