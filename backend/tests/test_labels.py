"""
Label Issuer and Tracking Service tests against the database.
"""

import random
from datetime import timedelta

import pytest
from sqlalchemy import select, func

from backend.app.core.exceptions import (
    DuplicateLabelError,
    InvalidAddressError,
    InvalidPackageError,
    InvalidTransitionError,
    IssuanceError,
    ResourceNotFoundError,
)
from backend.app.domain.shipping.label_issuer import LabelIssuer, generate_tracking_number, to_base36
from backend.app.domain.shipping.tracking import ensure_utc
from backend.app.domain.shipping.tracking_service import TrackingService
from backend.app.models.order import Order
from backend.app.models.shipping_enums import LabelStatus, OrderShippingStatus
from backend.app.models.shipping_label import ShippingLabel
from backend.app.models.shipping_status_event import ShippingStatusEvent
from backend.app.schemas.shipping import ShippingRate
from backend.app.services.shipping_service import ShippingService

from conftest import FIXED_NOW, RNG_SEED, ConstantChoiceRandom

DELHIVERY_SURFACE = ShippingRate(
    courier_id="delhivery",
    courier_name="Delhivery",
    service_type="surface",
    estimated_delivery_days=4,
    cost=53,
    cod_available=False,
)


@pytest.fixture
def issuer(db_session, clock):
    return LabelIssuer(db_session, rng=random.Random(RNG_SEED), now_fn=clock)


@pytest.fixture
def tracking(db_session, clock):
    return TrackingService(db_session, now_fn=clock)


async def _fresh_order(db_session, order_id):
    result = await db_session.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _event_statuses(db_session, label_id):
    result = await db_session.execute(
        select(ShippingStatusEvent.status)
        .where(ShippingStatusEvent.label_id == label_id)
        .order_by(ShippingStatusEvent.id)
    )
    return list(result.scalars().all())


# Tracking numbers

def test_to_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "Z"
    assert to_base36(36) == "10"


def test_tracking_number_format():
    tracking_number = generate_tracking_number("bluedart", random.Random(RNG_SEED), FIXED_NOW)
    timestamp = to_base36(int(FIXED_NOW.timestamp() * 1000))

    assert tracking_number.startswith("BLU" + timestamp)
    assert len(tracking_number) == 3 + len(timestamp) + 4
    assert tracking_number.isalnum() and tracking_number.upper() == tracking_number


# Issuance

@pytest.mark.asyncio
async def test_issue_label_projects_onto_order(issuer, db_session, orders, from_address, to_address):
    label = await issuer.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)

    assert label.tracking_number.startswith("DEL")
    assert label.status == LabelStatus.CREATED
    assert label.courier_name == "Delhivery"
    assert label.shipping_cost == 53
    assert label.estimated_delivery_days == 4
    assert label.label_url == f"/api/shipping/labels/{label.tracking_number}.pdf"
    assert label.to_address["city"] == "Bengaluru"
    assert label.from_address["pincode"] == "110006"

    order = await _fresh_order(db_session, "order-1")
    assert order.tracking_number == label.tracking_number
    assert order.courier_partner == "delhivery"
    assert order.shipping_status == OrderShippingStatus.LABEL_CREATED
    assert order.shipping_cost == 53
    assert ensure_utc(order.estimated_delivery) == FIXED_NOW + timedelta(days=4)

    assert await _event_statuses(db_session, label.id) == [LabelStatus.CREATED]


@pytest.mark.asyncio
async def test_second_label_for_order_is_rejected(issuer, db_session, orders, from_address, to_address):
    await issuer.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)

    with pytest.raises(DuplicateLabelError):
        await issuer.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)

    count = await db_session.execute(
        select(func.count(ShippingLabel.id)).where(ShippingLabel.order_id == "order-1")
    )
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_unknown_courier_is_not_found(issuer, orders, from_address, to_address):
    rate = DELHIVERY_SURFACE.model_copy(update={"courier_id": "fedex"})
    with pytest.raises(ResourceNotFoundError):
        await issuer.issue_label("order-1", rate, from_address, to_address, 2.0)


@pytest.mark.asyncio
async def test_service_not_offered_by_courier_is_not_found(issuer, orders, from_address, to_address):
    rate = DELHIVERY_SURFACE.model_copy(update={"courier_id": "bluedart", "service_type": "cod"})
    with pytest.raises(ResourceNotFoundError):
        await issuer.issue_label("order-1", rate, from_address, to_address, 2.0)


@pytest.mark.asyncio
async def test_unknown_order_is_not_found(issuer, orders, from_address, to_address):
    with pytest.raises(ResourceNotFoundError) as exc_info:
        await issuer.issue_label("order-404", DELHIVERY_SURFACE, from_address, to_address, 2.0)
    assert exc_info.value.details["resource"] == "Order"


@pytest.mark.asyncio
async def test_malformed_pincode_is_rejected(issuer, orders, from_address, to_address):
    bad_address = to_address.model_copy(update={"pincode": "056001"})
    with pytest.raises(InvalidAddressError) as exc_info:
        await issuer.issue_label("order-1", DELHIVERY_SURFACE, from_address, bad_address, 2.0)
    assert exc_info.value.details["field"] == "to_pincode"


@pytest.mark.asyncio
@pytest.mark.parametrize("weight", [0, -2.0, 20.5])
async def test_bad_weight_is_rejected(issuer, db_session, orders, from_address, to_address, weight):
    with pytest.raises(InvalidPackageError):
        await issuer.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, weight)

    count = await db_session.execute(select(func.count(ShippingLabel.id)))
    assert count.scalar() == 0


EKART_STANDARD = ShippingRate(
    courier_id="ekart",
    courier_name="Ekart Logistics",
    service_type="standard",
    estimated_delivery_days=4,
    cost=54,
    cod_available=False,
)

EKART_COD = EKART_STANDARD.model_copy(update={"service_type": "cod", "cod_available": True})


@pytest.mark.asyncio
async def test_cod_over_courier_limit_is_rejected(issuer, db_session, orders, from_address, to_address):
    # Ekart collects up to 15000
    with pytest.raises(InvalidPackageError) as exc_info:
        await issuer.issue_label("order-1", EKART_STANDARD, from_address, to_address, 2.0, cod_amount=20000)

    assert exc_info.value.details == {"courier_id": "ekart", "cod_amount": 20000}
    count = await db_session.execute(select(func.count(ShippingLabel.id)))
    assert count.scalar() == 0


@pytest.mark.asyncio
async def test_cod_within_limit_or_cod_service_is_accepted(issuer, orders, from_address, to_address):
    within = await issuer.issue_label("order-1", EKART_STANDARD, from_address, to_address, 2.0, cod_amount=15000)
    cod_service = await issuer.issue_label("order-2", EKART_COD, from_address, to_address, 2.0, cod_amount=20000)

    assert within.cod_amount == 15000
    assert cod_service.cod_amount == 20000


@pytest.mark.asyncio
async def test_tracking_number_collision_is_retried(db_session, clock, orders, from_address, to_address):
    first = LabelIssuer(db_session, rng=random.Random(RNG_SEED), now_fn=clock)
    taken = (await first.issue_label("order-2", DELHIVERY_SURFACE, from_address, to_address, 2.0)).tracking_number

    # Same seed and clock: the first draw repeats the number already taken
    second = LabelIssuer(db_session, rng=random.Random(RNG_SEED), now_fn=clock)
    label = await second.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)

    assert label.tracking_number != taken
    assert label.order_id == "order-1"
    order = await _fresh_order(db_session, "order-1")
    assert order.tracking_number == label.tracking_number


@pytest.mark.asyncio
async def test_exhausted_collisions_raise_issuance_error(db_session, clock, orders, from_address, to_address):
    first = LabelIssuer(db_session, rng=ConstantChoiceRandom(), now_fn=clock)
    await first.issue_label("order-2", DELHIVERY_SURFACE, from_address, to_address, 2.0)

    second = LabelIssuer(db_session, rng=ConstantChoiceRandom(), now_fn=clock, max_attempts=3)
    with pytest.raises(IssuanceError) as exc_info:
        await second.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)
    assert exc_info.value.status_code == 503
    assert exc_info.value.details == {"order_id": "order-1", "attempts": 3}

    order = await _fresh_order(db_session, "order-1")
    assert order.tracking_number is None
    assert order.shipping_status is None


# Status updates

@pytest.mark.asyncio
async def test_update_status_records_event_and_order(issuer, tracking, db_session, clock, orders, from_address, to_address):
    label = await issuer.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)
    label_id, tracking_number = label.id, label.tracking_number

    clock.now = FIXED_NOW + timedelta(hours=6)
    updated = await tracking.update_status(tracking_number, LabelStatus.PICKED_UP, "Delhi Sorting Center")
    assert updated.status == LabelStatus.PICKED_UP

    order = await _fresh_order(db_session, "order-1")
    assert order.shipping_status == OrderShippingStatus.PICKED_UP
    assert order.actual_delivery is None
    assert await _event_statuses(db_session, label_id) == [LabelStatus.CREATED, LabelStatus.PICKED_UP]


@pytest.mark.asyncio
async def test_delivery_sets_actual_delivery(issuer, tracking, db_session, clock, orders, from_address, to_address):
    label = await issuer.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)
    tracking_number = label.tracking_number

    clock.now = FIXED_NOW + timedelta(hours=50)
    await tracking.update_status(tracking_number, LabelStatus.DELIVERED)

    order = await _fresh_order(db_session, "order-1")
    assert order.shipping_status == OrderShippingStatus.DELIVERED
    assert ensure_utc(order.actual_delivery) == FIXED_NOW + timedelta(hours=50)


@pytest.mark.asyncio
async def test_delivered_then_in_transit_is_rejected(issuer, tracking, db_session, orders, from_address, to_address):
    label = await issuer.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)
    label_id, tracking_number = label.id, label.tracking_number

    await tracking.update_status(tracking_number, LabelStatus.DELIVERED)
    with pytest.raises(InvalidTransitionError):
        await tracking.update_status(tracking_number, LabelStatus.IN_TRANSIT)

    refreshed = await tracking.get_label(tracking_number)
    assert refreshed.status == LabelStatus.DELIVERED
    assert await _event_statuses(db_session, label_id) == [LabelStatus.CREATED, LabelStatus.DELIVERED]


@pytest.mark.asyncio
async def test_repeating_current_status_is_a_noop(issuer, tracking, db_session, orders, from_address, to_address):
    label = await issuer.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)
    label_id, tracking_number = label.id, label.tracking_number

    await tracking.update_status(tracking_number, LabelStatus.IN_TRANSIT)
    await tracking.update_status(tracking_number, LabelStatus.IN_TRANSIT)

    assert await _event_statuses(db_session, label_id) == [LabelStatus.CREATED, LabelStatus.IN_TRANSIT]


@pytest.mark.asyncio
async def test_unknown_tracking_number(tracking):
    with pytest.raises(ResourceNotFoundError):
        await tracking.update_status("UNKNOWN", LabelStatus.PICKED_UP)
    with pytest.raises(ResourceNotFoundError):
        await tracking.track("UNKNOWN")


# Tracking lookups

@pytest.mark.asyncio
async def test_track_fresh_label(issuer, tracking, orders, from_address, to_address):
    label = await issuer.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)

    info = await tracking.track(label.tracking_number)
    assert info.current_status == LabelStatus.CREATED
    assert info.estimated_delivery == FIXED_NOW + timedelta(days=4)
    assert [event.status for event in info.events] == ["Label Created"]
    assert info.events[0].timestamp == FIXED_NOW
    assert info.events[0].location == "New Delhi"


@pytest.mark.asyncio
async def test_track_reflects_update_and_elapsed_time(issuer, tracking, clock, orders, from_address, to_address):
    label = await issuer.issue_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)
    tracking_number = label.tracking_number

    clock.now = FIXED_NOW + timedelta(hours=3)
    await tracking.update_status(tracking_number, LabelStatus.PICKED_UP, "Delhi Sorting Center")

    clock.now = FIXED_NOW + timedelta(hours=30)
    info = await tracking.track(tracking_number)

    assert info.current_status == LabelStatus.PICKED_UP
    assert [event.status for event in info.events] == ["Label Created", "Picked Up", "In Transit"]
    assert info.events[1].timestamp == FIXED_NOW + timedelta(hours=3)
    assert info.events[1].location == "Delhi Sorting Center"
    assert info.events[2].location == "Delhi Hub"


# Facade

@pytest.mark.asyncio
async def test_list_labels_newest_first_with_pagination(db_session, clock, orders, from_address, to_address):
    service = ShippingService(db=db_session, rng=random.Random(RNG_SEED), now_fn=clock)

    first = await service.create_label("order-1", DELHIVERY_SURFACE, from_address, to_address, 2.0)
    clock.now = FIXED_NOW + timedelta(hours=1)
    second = await service.create_label("order-2", DELHIVERY_SURFACE, from_address, to_address, 2.0)
    clock.now = FIXED_NOW + timedelta(hours=2)
    await service.create_label("order-3", DELHIVERY_SURFACE, from_address, to_address, 2.0)

    labels, total = await service.list_labels_for_seller("seller-1")
    assert total == 2
    assert [label.tracking_number for label in labels] == [second.tracking_number, first.tracking_number]

    page, total = await service.list_labels_for_seller("seller-1", offset=1, limit=1)
    assert total == 2
    assert [label.order_id for label in page] == ["order-1"]

    everything, total = await service.list_labels_for_seller(None)
    assert total == 3
    assert everything[0].order_id == "order-3"


@pytest.mark.asyncio
async def test_label_owner_is_order_seller(db_session, clock, orders, from_address, to_address):
    service = ShippingService(db=db_session, rng=random.Random(RNG_SEED), now_fn=clock)
    label = await service.create_label("order-3", DELHIVERY_SURFACE, from_address, to_address, 2.0)

    assert await service.get_label_owner(label.tracking_number) == "seller-2"
