"""
Tracking Synthesizer.

Label lifecycle rules and the simulated tracking timeline.

The courier network does not push scans, so the timeline is projected from
the label's creation time: pickup after 12h, in transit after 24h, out for
delivery after 48h and delivered at 72h. A milestone is shown when the
persisted status has reached it, or when enough time has passed that it is
plausible anyway. Delivery and return are only shown once recorded.
Explicitly recorded status events replace the projected time and place of
their milestone.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, List, Optional, Sequence

from backend.app.core.exceptions import InvalidTransitionError
from backend.app.models.shipping_enums import LabelStatus, OrderShippingStatus
from backend.app.schemas.shipping import TrackingEvent

# Happy path order
LIFECYCLE: Sequence[LabelStatus] = (
    LabelStatus.CREATED,
    LabelStatus.PICKED_UP,
    LabelStatus.IN_TRANSIT,
    LabelStatus.DELIVERED,
)

TERMINAL_STATUSES: FrozenSet[LabelStatus] = frozenset({LabelStatus.DELIVERED, LabelStatus.RETURNED})


def _build_transitions() -> Dict[LabelStatus, FrozenSet[LabelStatus]]:
    transitions = {}
    for index, status in enumerate(LIFECYCLE):
        if status in TERMINAL_STATUSES:
            transitions[status] = frozenset()
            continue
        forward = set(LIFECYCLE[index + 1:])
        forward.add(LabelStatus.RETURNED)
        transitions[status] = frozenset(forward)
    transitions[LabelStatus.RETURNED] = frozenset()
    return transitions


# Allowed moves from each status. Forward skips are allowed, backward moves are not.
TRANSITIONS: Dict[LabelStatus, FrozenSet[LabelStatus]] = _build_transitions()

ORDER_STATUS_BY_LABEL_STATUS: Dict[LabelStatus, OrderShippingStatus] = {
    LabelStatus.CREATED: OrderShippingStatus.LABEL_CREATED,
    LabelStatus.PICKED_UP: OrderShippingStatus.PICKED_UP,
    LabelStatus.IN_TRANSIT: OrderShippingStatus.IN_TRANSIT,
    LabelStatus.DELIVERED: OrderShippingStatus.DELIVERED,
    LabelStatus.RETURNED: OrderShippingStatus.RETURNED,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_noop(current: LabelStatus, requested: LabelStatus) -> bool:
    return current == requested


def validate_transition(current: LabelStatus, requested: LabelStatus) -> None:
    """
    Raises:
        InvalidTransitionError: If `requested` is not reachable from `current`
    """
    if is_noop(current, requested):
        return
    if requested not in TRANSITIONS[current]:
        raise InvalidTransitionError(current.value, requested.value)


def map_to_order_status(status: LabelStatus) -> OrderShippingStatus:
    return ORDER_STATUS_BY_LABEL_STATUS[status]


@dataclass(frozen=True)
class Milestone:
    status: Optional[LabelStatus]  # None: display-only step with no label status
    title: str
    description: str
    offset: Optional[timedelta]    # None: shown only once recorded
    # Statuses at which this milestone is certain regardless of elapsed time
    reached_at: FrozenSet[LabelStatus]


MILESTONES: Sequence[Milestone] = (
    Milestone(
        LabelStatus.CREATED, "Label Created", "Shipping label has been created",
        timedelta(0), frozenset(LabelStatus),
    ),
    Milestone(
        LabelStatus.PICKED_UP, "Picked Up", "Package has been picked up by courier",
        timedelta(hours=12),
        frozenset({LabelStatus.PICKED_UP, LabelStatus.IN_TRANSIT, LabelStatus.DELIVERED}),
    ),
    Milestone(
        LabelStatus.IN_TRANSIT, "In Transit", "Package is in transit",
        timedelta(hours=24),
        frozenset({LabelStatus.IN_TRANSIT, LabelStatus.DELIVERED}),
    ),
    Milestone(
        None, "Out for Delivery", "Package is out for delivery",
        timedelta(hours=48), frozenset({LabelStatus.DELIVERED}),
    ),
    Milestone(
        LabelStatus.DELIVERED, "Delivered", "Package has been delivered successfully",
        None, frozenset({LabelStatus.DELIVERED}),
    ),
)

DELIVERED_OFFSET = timedelta(hours=72)


@dataclass(frozen=True)
class RecordedEvent:
    """An explicitly recorded status change."""
    status: LabelStatus
    occurred_at: datetime
    location: Optional[str] = None


def _default_location(milestone: Milestone, from_address: dict, to_address: dict) -> str:
    if milestone.title in ("Label Created", "Picked Up"):
        return from_address["city"]
    if milestone.title == "In Transit":
        return f"{from_address['state']} Hub"
    return to_address["city"]


def synthesize_events(
    status: LabelStatus,
    created_at: datetime,
    from_address: dict,
    to_address: dict,
    now: datetime,
    recorded: Sequence[RecordedEvent] = (),
) -> List[TrackingEvent]:
    """
    Build the chronological tracking timeline of one label.

    Args:
        status: Persisted label status (authoritative)
        created_at: Label creation time
        from_address, to_address: Address snapshots on the label
        now: Current time, used for elapsed-time inference
        recorded: Explicit status changes, any order
    """
    created_at = ensure_utc(created_at)
    now = ensure_utc(now)
    recorded_by_status = {}
    for event in recorded:
        # Latest record wins for a status
        previous = recorded_by_status.get(event.status)
        if previous is None or ensure_utc(event.occurred_at) >= ensure_utc(previous.occurred_at):
            recorded_by_status[event.status] = event

    # A returned shipment stops progressing at the return
    horizon = now
    returned = recorded_by_status.get(LabelStatus.RETURNED)
    if status == LabelStatus.RETURNED:
        horizon = ensure_utc(returned.occurred_at) if returned else now

    elapsed = horizon - created_at
    events = []
    for milestone in MILESTONES:
        record = recorded_by_status.get(milestone.status) if milestone.status else None
        reached = status in milestone.reached_at or record is not None
        if not reached and milestone.offset is not None and milestone.offset > timedelta(0):
            reached = elapsed > milestone.offset
        if not reached:
            continue

        if record is not None:
            timestamp = ensure_utc(record.occurred_at)
        elif milestone.offset is not None:
            timestamp = created_at + milestone.offset
        else:
            timestamp = created_at + DELIVERED_OFFSET

        location = record.location if record is not None and record.location else None
        events.append({
            "timestamp": timestamp,
            "status": milestone.title,
            "location": location or _default_location(milestone, from_address, to_address),
            "description": milestone.description,
            "recorded": record is not None,
        })

    if status == LabelStatus.RETURNED:
        events.append({
            "timestamp": horizon,
            "status": "Returned",
            "location": (returned.location if returned and returned.location else from_address["city"]),
            "description": "Package is being returned to the seller",
            "recorded": True,
        })

    # Projected steps never come after a later recorded step
    for index in range(len(events) - 2, -1, -1):
        following = events[index + 1]["timestamp"]
        if not events[index]["recorded"] and events[index]["timestamp"] > following:
            events[index]["timestamp"] = following

    events.sort(key=lambda event: event["timestamp"])
    return [
        TrackingEvent(
            timestamp=event["timestamp"],
            status=event["status"],
            location=event["location"],
            description=event["description"],
        )
        for event in events
    ]


def estimated_delivery(created_at: datetime, estimated_delivery_days: int) -> datetime:
    return ensure_utc(created_at) + timedelta(days=estimated_delivery_days)
