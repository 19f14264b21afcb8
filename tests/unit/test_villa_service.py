"""
Tests for villa booking management.
"""

from datetime import UTC, datetime

import pytest

from underground.db import collections
from underground.errors import NotFoundError, ValidationError

CHECK_IN = datetime(2026, 7, 1, 15, 0, tzinfo=UTC)
CHECK_OUT = datetime(2026, 7, 5, 11, 0, tzinfo=UTC)


async def _booking(villa_service, member_id="member-1", check_in=CHECK_IN, **details):
    return await villa_service.create_booking(
        "admin-1",
        member_id=member_id,
        villa_name="Casa Azul",
        check_in=check_in,
        check_out=CHECK_OUT,
        **details,
    )


@pytest.mark.asyncio
async def test_create_booking_defaults(villa_service):
    booking = await _booking(villa_service, price=4200.0)

    assert booking.status == "Confirmed"
    assert booking.payment_status == "Pending"
    assert booking.price == 4200.0
    assert booking.created_by == "admin-1"


@pytest.mark.asyncio
async def test_create_booking_requires_ordered_dates(villa_service):
    with pytest.raises(ValidationError):
        await _booking(villa_service, check_in=CHECK_OUT)


@pytest.mark.asyncio
async def test_create_booking_requires_member(villa_service):
    with pytest.raises(ValidationError):
        await _booking(villa_service, member_id="")


@pytest.mark.asyncio
async def test_update_rechecks_stored_dates(villa_service):
    booking = await _booking(villa_service)

    with pytest.raises(ValidationError):
        await villa_service.update_booking(
            booking.id, "admin-1", {"check_in": datetime(2026, 7, 6, tzinfo=UTC)}
        )

    updated = await villa_service.update_booking(
        booking.id, "admin-1", {"check_in": datetime(2026, 7, 2, 15, 0, tzinfo=UTC), "notes": "Late arrival"}
    )
    assert updated.check_in == datetime(2026, 7, 2, 15, 0, tzinfo=UTC)
    assert updated.notes == "Late arrival"


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(villa_service):
    booking = await _booking(villa_service)

    with pytest.raises(ValidationError):
        await villa_service.update_booking(booking.id, "admin-1", {"member_id": "someone-else"})


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["status", "notes", "payment_status", "property_rules", "villa_name"])
async def test_update_cannot_clear_required_field(villa_service, field):
    booking = await _booking(villa_service)

    with pytest.raises(ValidationError):
        await villa_service.update_booking(booking.id, "admin-1", {field: None})

    # The stored booking still loads everywhere
    assert (await villa_service.get_booking(booking.id)).status == "Confirmed"
    assert [b.id for b in await villa_service.list_bookings()] == [booking.id]
    assert len(await villa_service.list_member_bookings("member-1")) == 1


@pytest.mark.asyncio
async def test_update_can_clear_optional_field(villa_service):
    booking = await _booking(villa_service, price=900.0)

    updated = await villa_service.update_booking(booking.id, "admin-1", {"price": None})

    assert updated.price is None


@pytest.mark.asyncio
async def test_missing_booking(villa_service):
    with pytest.raises(NotFoundError):
        await villa_service.get_booking("missing")
    with pytest.raises(NotFoundError):
        await villa_service.update_booking("missing", "admin-1", {"notes": "x"})
    with pytest.raises(NotFoundError):
        await villa_service.delete_booking("missing", "admin-1")


@pytest.mark.asyncio
async def test_delete_booking(store, villa_service, audit):
    booking = await _booking(villa_service)

    await villa_service.delete_booking(booking.id, "admin-1")

    assert await store.get(collections.VILLA_BOOKINGS, booking.id) is None
    await audit.drain()
    actions = [a.data["action"] for a in await store.query(collections.ADMIN_ACTIONS)]
    assert sorted(actions) == ["villa_booking_created", "villa_booking_deleted"]


@pytest.mark.asyncio
async def test_member_bookings_hide_admin_fields(villa_service):
    await _booking(villa_service, price=900.0, property_contact_info="+1 555 0100")
    await _booking(villa_service, member_id="member-2")

    mine = await villa_service.list_member_bookings("member-1")

    assert len(mine) == 1
    assert mine[0]["villa_name"] == "Casa Azul"
    for hidden in ("price", "property_contact_info", "created_by"):
        assert hidden not in mine[0]


@pytest.mark.asyncio
async def test_list_bookings_newest_check_in_first(villa_service):
    early = await _booking(villa_service, check_in=datetime(2026, 6, 1, tzinfo=UTC))
    late = await _booking(villa_service, check_in=datetime(2026, 7, 2, tzinfo=UTC))

    bookings = await villa_service.list_bookings()

    assert [b.id for b in bookings] == [late.id, early.id]
