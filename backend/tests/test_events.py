from datetime import datetime

import pytest

from groupdesk.exceptions import NotFound, ValidationFailure
from groupdesk.services import EventService, LocationService


def test_key_events_only(session, seeded):
    events = EventService(session).get_key_events([seeded.dp_active.id, seeded.kv_planned.id])
    assert [(e.group_id, e.event_type) for e in events] == [
        (seeded.dp_active.id, "Demo"),
        (seeded.kv_planned.id, "Demo"),
    ]
    assert all(e.is_key_date for e in events)


def test_key_events_of_group_without_events(session, seeded):
    assert EventService(session).get_key_events_by_group_id(seeded.dp_graduated.id) == []


def test_events_in_range_are_inclusive(session, seeded):
    service = EventService(session)
    events = service.get_events(
        [seeded.dp_active.id, seeded.kv_planned.id],
        datetime(2026, 9, 1, 10), datetime(2026, 10, 15, 16),
    )
    assert [e.date_time for e in events] == [datetime(2026, 9, 1, 10), datetime(2026, 10, 15, 16)]


def test_events_filtered_by_group(session, seeded):
    events = EventService(session).get_events_by_group_id(
        seeded.kv_planned.id, datetime(2026, 1, 1), datetime(2026, 12, 31),
    )
    assert [e.event_type for e in events] == ["Demo"]


def test_events_invalid_range(session, seeded):
    with pytest.raises(ValidationFailure) as exc:
        EventService(session).get_events([seeded.dp_active.id], datetime(2026, 12, 1), datetime(2026, 1, 1))
    assert exc.value.key == "illegalArgs.event.range"


def test_events_unknown_group(session, seeded):
    with pytest.raises(NotFound):
        EventService(session).get_key_events_by_group_id(999)


def test_locations_with_coordinators(session, seeded):
    locations = LocationService(session).get_all_locations()
    assert [(l.name, l.coordinator) for l in locations] == [("Dnipro", "coord_dnipro"), ("Kyiv", "coord_kyiv")]
