"""
Tests for the structlog processors added to every log event.
"""

from datetime import date, datetime, time

from gymbook.core.config import get_settings
from gymbook.core.logging import add_app_context, render_wall_clock


def test_wall_clock_values_rendered_as_iso():
    event = render_wall_clock(None, "info", {
        "event": "session_rescheduled",
        "start_time": datetime(2030, 1, 7, 10, 0),
        "day": date(2030, 1, 7),
        "slot_start": time(9, 30),
        "session_id": 12,
    })

    assert event == {
        "event": "session_rescheduled",
        "start_time": "2030-01-07T10:00:00",
        "day": "2030-01-07",
        "slot_start": "09:30:00",
        "session_id": 12,
    }


def test_app_context_added_without_overriding():
    settings = get_settings()

    event = add_app_context(None, "info", {"event": "generation_completed"})
    assert event["app"] == settings.APP_NAME
    assert event["env"] == settings.ENVIRONMENT

    bound = add_app_context(None, "info", {"event": "x", "env": "scheduler"})
    assert bound["env"] == "scheduler"
