"""Calendar agenda built from stored events.

Loads the events that can land in a window, expands recurring ones with
their exceptions, and merges in modified occurrences.
"""

import logging
from collections import defaultdict
from datetime import datetime

from lifeos.core.models import EventException, EventInstance, ExceptionStatus
from lifeos.core.recurrence import DEFAULT_MAX_INSTANCES, expand
from lifeos.persistence.store import LifeStore

logger = logging.getLogger(__name__)


def build_agenda(
    store: LifeStore,
    range_start: datetime,
    range_end: datetime,
    max_instances: int = DEFAULT_MAX_INSTANCES,
) -> list[EventInstance]:
    """Return every instance overlapping [range_start, range_end], by start."""
    events = store.get_events(range_start, range_end)
    recurring_ids = [e.id for e in events if e.recurrence_rule]

    by_parent: dict[str, list[EventException]] = defaultdict(list)
    for exc in store.get_exceptions(recurring_ids):
        by_parent[exc.parent_event_id].append(exc)

    instances: list[EventInstance] = []
    for event in events:
        exceptions = by_parent.get(event.id, [])
        instances.extend(expand(event, range_start, range_end, exceptions, max_instances))

        # Modified occurrences are suppressed by expand() and re-added here
        for exc in exceptions:
            if exc.status != ExceptionStatus.MODIFIED:
                continue
            override = _override_instance(event, exc)
            if _overlaps(override, range_start, range_end):
                instances.append(override)

    instances.sort(key=lambda i: i.start.timestamp())
    return instances


def cancel_occurrence(store: LifeStore, instance: EventInstance) -> EventException:
    """Remove a single generated occurrence from its series."""
    if not instance.is_recurring_instance or instance.parent_event_id is None:
        raise ValueError(f"{instance.id} is not an occurrence of a recurring event")
    exc = EventException(
        parent_event_id=instance.parent_event_id,
        original_start=instance.occurrence or instance.start,
        status=ExceptionStatus.CANCELLED,
    )
    store.save_exception(exc)
    logger.info("Cancelled occurrence %s", instance.id)
    return exc


def _override_instance(event, exc: EventException) -> EventInstance:
    duration = event.end - event.start
    start = exc.start or exc.original_start
    end = exc.end or (start + duration)
    return EventInstance(
        id=f"{event.id}-{exc.original_start.isoformat()}",
        title=exc.title or event.title,
        start=start,
        end=end,
        all_day=event.all_day,
        description=event.description,
        location=event.location,
        is_recurring_instance=True,
        parent_event_id=event.id,
        occurrence=exc.original_start,
        recurrence_rule=event.recurrence_rule,
    )


def _overlaps(instance: EventInstance, range_start: datetime, range_end: datetime) -> bool:
    try:
        return instance.start <= range_end and instance.end >= range_start
    except TypeError:
        # naive/aware mix: keep the override
        return True
