"""
Progress reporting for the org reader.

The record, builder and hierarchy modules never log on their own. They call an
optional observer with an event name and a dictionary of counts, and the
caller decides what to do with it.
"""

import logging
from typing import Any, Callable, Dict, Optional

Observer = Callable[[str, Dict[str, Any]], None]

USERS_READ = "users_read"
GROUPS_READ = "groups_read"
HIERARCHY_RESOLVED = "hierarchy_resolved"


def notify(observer: Optional[Observer], event: str, **counts: Any) -> None:
    if observer is not None:
        observer(event, counts)


def logging_observer(logger: Optional[logging.Logger] = None) -> Observer:
    """
    Build an observer that reports events through the logging module.

    Args:
        logger: Logger to write to (defaults to this module's logger)

    Returns:
        Observer: Callable suitable for the observer arguments of the reader
    """
    log = logger or logging.getLogger(__name__)

    def observe(event: str, counts: Dict[str, Any]) -> None:
        if event == USERS_READ:
            log.info(f"👤 Built {counts.get('users', 0)} user entities")
        elif event == GROUPS_READ:
            log.info(
                f"👥 Built {counts.get('groups', 0)} group entities "
                f"({counts.get('member_users', 0)} with user members)"
            )
        elif event == HIERARCHY_RESOLVED:
            log.info(
                f"🌳 Resolved hierarchy: {counts.get('groups', 0)} groups, "
                f"{counts.get('edges', 0)} membership edges"
            )
            if counts.get("cyclic_groups"):
                log.warning(
                    f"⚠️  {counts['cyclic_groups']} groups are part of a membership cycle"
                )
            dangling = counts.get("dangling_references", 0) + counts.get(
                "dangling_user_references", 0
            )
            if dangling or counts.get("self_references"):
                log.debug(
                    f"Ignored {dangling} dangling and "
                    f"{counts.get('self_references', 0)} self references"
                )
        else:
            log.debug(f"{event}: {counts}")

    return observe
