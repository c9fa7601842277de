"""Mutation events and the cache invalidation rules keyed on them.

Mutating services call ``emit(entity, ...)`` once after a successful write.
Derived read models declare which cache prefixes depend on which entity in
``INVALIDATION_RULES``; extra handlers can be attached with ``subscribe``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Tuple

from app.common import cache

logger = logging.getLogger("events")

ENROLLMENT = "enrollment"
LESSON_PROGRESS = "lesson_progress"
QUIZ_ATTEMPT = "quiz_attempt"
COURSE = "course"
PAYMENT = "payment"

INVALIDATION_RULES: Dict[str, Tuple[str, ...]] = {
    ENROLLMENT: ("enrollments:", "stats:"),
    LESSON_PROGRESS: ("progress:", "stats:"),
    QUIZ_ATTEMPT: ("progress:",),
    COURSE: ("courses:", "stats:"),
    PAYMENT: ("reconciliations:",),
}

Handler = Callable[[str, Dict[str, Any]], None]
_SUBSCRIBERS: Dict[str, List[Handler]] = defaultdict(list)


def subscribe(entity: str) -> Callable[[Handler], Handler]:
    def decorator(fn: Handler) -> Handler:
        _SUBSCRIBERS[entity].append(fn)
        return fn

    return decorator


def emit(entity: str, **payload: Any) -> None:
    dropped = 0
    for prefix in INVALIDATION_RULES.get(entity, ()):
        dropped += cache.clear(prefix)
    logger.debug("event=%s invalidated=%d payload=%s", entity, dropped, payload)
    for handler in list(_SUBSCRIBERS.get(entity, ())):
        try:
            handler(entity, payload)
        except Exception:
            # The write has already committed; listeners only log on failure.
            logger.exception("event handler failed entity=%s handler=%s", entity, getattr(handler, "__name__", handler))
