"""
Browser fingerprint identity for anonymous voting.

A fingerprint is the SHA-256 hex digest of eight browser signals joined
with '|'. It is a heuristic identity: two devices with identical signals
collide, and that is accepted.
"""
import hashlib
from dataclasses import dataclass, astuple
from typing import Any, Mapping, Optional

SEPARATOR = '|'


@dataclass(frozen=True)
class BrowserSignals:
    """The signals a browser reports, in hashing order."""
    user_agent: str = ''
    language: str = ''
    screen_width: int = 0
    screen_height: int = 0
    color_depth: int = 0
    timezone_offset: int = 0  # minutes, as reported by getTimezoneOffset()
    hardware_concurrency: int = 0
    platform: str = ''

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> 'BrowserSignals':
        """Build signals from a request payload.

        Accepts camelCase (as sent by browsers) or snake_case keys. A missing
        or unreadable component becomes '' or 0 instead of failing.
        """
        data = data if isinstance(data, Mapping) else {}

        def pick(snake, camel):
            value = data.get(camel)
            return data.get(snake) if value is None else value

        return cls(
            user_agent=_as_text(pick('user_agent', 'userAgent')),
            language=_as_text(pick('language', 'language')),
            screen_width=_as_int(pick('screen_width', 'screenWidth')),
            screen_height=_as_int(pick('screen_height', 'screenHeight')),
            color_depth=_as_int(pick('color_depth', 'colorDepth')),
            timezone_offset=_as_int(pick('timezone_offset', 'timezoneOffset')),
            hardware_concurrency=_as_int(pick('hardware_concurrency', 'hardwareConcurrency')),
            platform=_as_text(pick('platform', 'platform')),
        )


def _as_text(value) -> str:
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    return str(value)


def _as_int(value) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def generate_fingerprint(signals: BrowserSignals) -> str:
    """Hash the signals into a 64-char lowercase hex fingerprint.

    Pure and deterministic: identical signals always give the same value,
    and every component participates in the hash.
    """
    raw = SEPARATOR.join(str(component) for component in astuple(signals))
    return hashlib.sha256(raw.encode('utf-8')).hexdigest()
