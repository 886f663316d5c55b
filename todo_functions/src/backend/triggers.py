"""Reaction to committed updates on the todos collection."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping

from .context import ServiceContext
from .errors import NotFoundError
from .models import SUBSTANTIVE_FIELDS
from .schemas import TriggerRequest

logger = logging.getLogger(__name__)


def is_substantive_change(before: Mapping[str, Any], after: Mapping[str, Any]) -> bool:
    """True when done, title or content differ. Timestamps are never compared."""
    return any(before.get(f) != after.get(f) for f in SUBSTANTIVE_FIELDS)


def _next_stamp(now: datetime, *previous: Any) -> datetime:
    # updated_at must strictly advance even when the clock has not moved.
    latest = max((p for p in previous if isinstance(p, datetime)), default=None)
    if latest is not None and now <= latest:
        return latest + timedelta(microseconds=1)
    return now


# PUBLIC_INTERFACE
async def on_update_todo(context: ServiceContext, request: TriggerRequest) -> bool:
    """
    Stamp updated_at when an update changed done, title or content.

    The stamp write changes only updated_at, so when it re-fires this
    trigger the comparison short-circuits. Returns True when a stamp was written.
    """
    before, after = request.doc_before, request.doc_after
    if not is_substantive_change(before, after):
        return False

    doc_id = after["id"]
    stamp = _next_stamp(context.now(), before.get("updated_at"), after.get("updated_at"))
    try:
        await context.todos().doc(doc_id).update({"updated_at": stamp})
    except NotFoundError:
        logger.info("Todo %s was deleted before updated_at could be stamped", doc_id)
        return False
    return True
