from datetime import datetime

import pytest

from client import ApiError, SehatClient, refresh
from reminders import Notifier, ReminderScheduler


@pytest.fixture
def api(client):
    return SehatClient(base_url="http://testserver", session=client)


def test_client_flow(api):
    assert api.ping()["ok"] is True
    api.register("Alice", "a@x.com", "pw123")
    user = api.login("a@x.com", "pw123")
    assert user["name"] == "Alice"

    schedule = api.create_schedule("Aspirin", "08:00", dosage="1 tablet")
    assert [s["id"] for s in api.schedules()] == [schedule["id"]]

    log = api.record_log(schedule["id"])
    assert log["scheduleRef"] == "Aspirin"
    assert [entry["id"] for entry in api.history()] == [log["id"]]
    assert api.stats()["success_rate"] == 100

    assert api.delete_schedule(schedule["id"])["success"] is True
    assert api.schedules() == []


def test_client_raises_api_error(api):
    api.register("Alice", "a@x.com", "pw123")
    with pytest.raises(ApiError) as exc:
        api.register("Alice", "a@x.com", "pw123")
    assert exc.value.status == 400
    assert exc.value.message == "User already exists"

    with pytest.raises(ApiError) as exc:
        api.login("a@x.com", "wrong")
    assert exc.value.status == 401


def test_client_requires_login(api):
    with pytest.raises(ApiError) as exc:
        api.schedules()
    assert exc.value.status == 401


def test_refresh_loads_scheduler(api):
    api.register("Alice", "a@x.com", "pw123")
    api.login("a@x.com", "pw123")
    api.create_schedule("Aspirin", "08:00")
    api.create_schedule("Iron", "20:00")

    sent = []
    scheduler = ReminderScheduler(Notifier(send=lambda t, b: sent.append(b)), clock=lambda: datetime(2026, 10, 18, 8, 0, 10))
    assert refresh(api, scheduler) == 2
    scheduler.tick()
    assert sent == ["Aspirin"]

    api.delete_all_schedules()
    assert refresh(api, scheduler) == 0
    assert scheduler.tasks == {}
