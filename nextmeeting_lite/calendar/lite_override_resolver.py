"""Partition parsed components into masters and per-uid override maps."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from nextmeeting_lite.calendar.lite_models import LiteEventComponent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedComponents:
    """Masters plus overrides keyed by uid, then by UTC recurrence instant."""

    masters: list[LiteEventComponent] = field(default_factory=list)
    overrides_by_uid: dict[str, dict[datetime, LiteEventComponent]] = field(default_factory=dict)
    master_uids: frozenset[str] = frozenset()

    @property
    def orphaned_uids(self) -> frozenset[str]:
        """Override uids with no master among the parsed components."""
        return frozenset(self.overrides_by_uid) - self.master_uids

    def overrides_for(self, uid: str | None) -> dict[datetime, LiteEventComponent]:
        return self.overrides_by_uid.get(uid or "", {})


def resolve_overrides(components: Iterable[LiteEventComponent]) -> ResolvedComponents:
    """Split components into masters and overrides.

    Components without UID are logged and dropped. When two overrides share
    a uid and recurrence instant the later one wins.

    Args:
        components: Decoded VEVENT components

    Returns:
        ResolvedComponents
    """
    masters: list[LiteEventComponent] = []
    overrides_by_uid: dict[str, dict[datetime, LiteEventComponent]] = {}

    for component in components:
        if not component.uid:
            logger.warning("Event without UID dropped (summary=%r)", component.summary)
            continue

        if not component.is_override:
            masters.append(component)
            continue

        by_instant = overrides_by_uid.setdefault(component.uid, {})
        if component.recurrence_id in by_instant:
            logger.debug(
                "Duplicate override for %s at %s; keeping the later one",
                component.uid,
                component.recurrence_id,
            )
        by_instant[component.recurrence_id] = component

    resolved = ResolvedComponents(
        masters=masters,
        overrides_by_uid=overrides_by_uid,
        master_uids=frozenset(m.uid for m in masters if m.uid),
    )

    for uid in sorted(resolved.orphaned_uids):
        logger.warning(
            "Orphaned override(s) for uid %s: %d instance(s) without a master",
            uid,
            len(overrides_by_uid[uid]),
        )

    logger.debug(
        "Resolved %d master(s) and %d override uid(s)", len(masters), len(overrides_by_uid)
    )
    return resolved
