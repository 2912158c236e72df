"""HTTP client for the Sehat Pulse API and a reminder watch loop on top of it."""
import logging
import os
import sys
from datetime import timedelta
from typing import List, Optional

import requests

from config import Config
from reminders import Notifier, ReminderScheduler

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class SehatClient:
    def __init__(self, base_url: str = Config.API_URL, session=None, token: Optional[str] = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.token = token
        self.timeout = timeout

    def _request(self, method: str, path: str, json: Optional[dict] = None, auth: bool = True):
        headers = {}
        if auth:
            if not self.token:
                raise ApiError(401, "Please login first")
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            res = self.session.request(method, f"{self.base_url}{path}", json=json, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise ApiError(0, "Server unreachable") from e
        try:
            data = res.json()
        except ValueError:
            data = None
        if res.status_code >= 400:
            message = data.get("error") if isinstance(data, dict) else None
            # requests exposes `reason`, httpx `reason_phrase`
            message = message or getattr(res, "reason", None) or getattr(res, "reason_phrase", "")
            raise ApiError(res.status_code, message)
        return data

    # Auth
    def register(self, name: str, email: str, password: str) -> dict:
        return self._request("POST", "/api/auth/register", {"name": name, "email": email, "password": password}, auth=False)

    def login(self, email: str, password: str) -> dict:
        data = self._request("POST", "/api/auth/login", {"email": email, "password": password}, auth=False)
        self.token = data["token"]
        return data["user"]

    def logout(self) -> None:
        self.token = None

    def ping(self) -> dict:
        return self._request("GET", "/api/ping", auth=False)

    # Schedules
    def schedules(self) -> List[dict]:
        return self._request("GET", "/api/schedules")

    def create_schedule(self, name: str, time: str, dosage: Optional[str] = None,
                        frequency: str = "daily", duration: str = "N/A") -> dict:
        body = {"name": name, "time": time, "dosage": dosage, "frequency": frequency, "duration": duration}
        return self._request("POST", "/api/schedules", body)["schedule"]

    def delete_schedule(self, schedule_id: str) -> dict:
        return self._request("DELETE", f"/api/schedules/{schedule_id}")

    def delete_all_schedules(self) -> dict:
        return self._request("DELETE", "/api/schedules/deleteAll")

    # Logs
    def record_log(self, schedule_id: str, status: str = "taken") -> dict:
        return self._request("POST", "/api/logs", {"scheduleId": schedule_id, "status": status})["log"]

    def history(self) -> List[dict]:
        return self._request("GET", "/api/logs/history")

    def stats(self) -> dict:
        return self._request("GET", "/api/stats")


def refresh(client: SehatClient, scheduler: ReminderScheduler) -> int:
    """Reload the scheduler's snapshot from the API; returns the schedule count."""
    schedules = client.schedules()
    scheduler.load(schedules)
    return len(schedules)


def watch(client: SehatClient, scheduler: ReminderScheduler,
          period: float = Config.REMINDER_POLL_SECONDS, blocking: bool = False):
    """Load the caller's schedules and start ticking the reminder scheduler."""
    count = refresh(client, scheduler)
    logger.info("Watching %d schedules, next reminder at %s", count, scheduler.next_fire())
    return scheduler.start(period=period, blocking=blocking)


if __name__ == "__main__":
    logging.basicConfig(level=Config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    email = os.environ.get("SEHAT_EMAIL")
    password = os.environ.get("SEHAT_PASSWORD")
    if not email or not password:
        logger.error("Set SEHAT_EMAIL and SEHAT_PASSWORD")
        sys.exit(1)
    api = SehatClient()
    try:
        api.login(email, password)
    except ApiError as e:
        logger.error("Login failed: %s", e.message)
        sys.exit(1)
    notifier = Notifier(alert=print)
    reminders = ReminderScheduler(notifier, grace=timedelta(minutes=Config.REMINDER_GRACE_MINUTES))
    try:
        watch(api, reminders, blocking=True)
    except (KeyboardInterrupt, SystemExit):
        reminders.stop()
