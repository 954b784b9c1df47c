"""Rewrite legacy TZID parameter values in raw calendar text to IANA identifiers.

Outlook/Exchange feeds reference Windows zone names ("FLE Standard Time") and
deprecated IANA aliases. Names that the calendar defines itself in a
VTIMEZONE block are left alone; the definition is authoritative.
"""

import logging
import re
from typing import Optional

from nextmeeting_lite.core.timezone_utils import (
    is_ambiguous_windows_zone,
    is_valid_timezone,
    resolve_timezone_alias,
    windows_tz_to_iana,
)

logger = logging.getLogger(__name__)

# TZID="Quoted; Name" or TZID=Name up to the next parameter or value separator
_TZID_PARAM_RE = re.compile(r'TZID=(?:"([^"\r\n]*)"|([^:;\r\n]+))')

_VTIMEZONE_BLOCK_RE = re.compile(
    r"BEGIN:VTIMEZONE\r?\n(.*?)END:VTIMEZONE", re.DOTALL | re.IGNORECASE
)

_TZID_PROPERTY_RE = re.compile(r"^TZID(?:;[^:\r\n]*)?:(.*?)\s*$", re.MULTILINE | re.IGNORECASE)


def collect_defined_tzids(text: str) -> frozenset[str]:
    """Return the TZID values of every VTIMEZONE block in text."""
    defined: set[str] = set()
    for block in _VTIMEZONE_BLOCK_RE.finditer(text):
        for match in _TZID_PROPERTY_RE.finditer(block.group(1)):
            name = match.group(1).strip().strip('"')
            if name:
                defined.add(name)
    return frozenset(defined)


class TimezoneNormalizer:
    """Resolve legacy zone names referenced by TZID parameters.

    Resolution order is: pinned overrides, the Windows table, the alias
    table. A name that is already a valid IANA identifier is kept.
    """

    def __init__(self, pinned: Optional[dict[str, str]] = None):
        self.pinned = dict(pinned or {})

    def resolve(self, name: str) -> Optional[str]:
        """Return the IANA identifier for name, or None if it cannot be resolved."""
        if name not in self.pinned and is_ambiguous_windows_zone(name):
            logger.info("Windows zone %r spans several IANA zones; pin it to choose one", name)
        for candidate in (
            self.pinned.get(name),
            windows_tz_to_iana(name),
            resolve_timezone_alias(name),
        ):
            if candidate and is_valid_timezone(candidate):
                return candidate
        return None

    def normalize(self, text: str) -> str:
        """Return text with every resolvable legacy TZID reference rewritten."""
        defined = collect_defined_tzids(text)
        unresolved: set[str] = set()
        rewritten: dict[str, str] = {}

        def _replace(match: re.Match) -> str:
            name = (match.group(1) if match.group(1) is not None else match.group(2)).strip()
            if not name or name in defined:
                return match.group(0)

            resolved = self.resolve(name)
            if resolved is None:
                unresolved.add(name)
                return match.group(0)
            if resolved != name:
                rewritten[name] = resolved
            return f"TZID={resolved}"

        result = _TZID_PARAM_RE.sub(_replace, text)

        for name, resolved in sorted(rewritten.items()):
            logger.debug("Rewrote TZID %r -> %r", name, resolved)
        for name in sorted(unresolved):
            logger.warning("Unresolvable timezone identifier %r left unchanged", name)

        return result
