"""
Client-side medicine reminders.

Each loaded schedule becomes a ``ReminderTask`` with an absolute ``fire_at``
timestamp. ``ReminderScheduler.tick`` fires every task whose time has come and
moves it to the same time on the next day, so a schedule reminds at most once
per day no matter how often the loop ticks. The clock is injected; it must
return local wall-clock datetimes (``datetime.now`` by default).
"""
import atexit
import logging
import re
from dataclasses import dataclass
from datetime import datetime, time as dtime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler

from schemas import TIME_PATTERN

logger = logging.getLogger(__name__)

REMINDER_TITLE = "💊 Medicine Reminder"

_time_re = re.compile(TIME_PATTERN)


def parse_time(value: str) -> dtime:
    if not isinstance(value, str) or not _time_re.match(value):
        raise ValueError(f"Expected HH:MM, got {value!r}")
    hours, minutes = value.split(":")
    return dtime(int(hours), int(minutes))


def format_clock(now: datetime) -> str:
    return now.strftime("%H:%M")


def reminder_key(schedule: dict) -> str:
    return str(schedule.get("id") or schedule.get("_id") or schedule.get("name"))


def reminder_body(schedule: dict) -> str:
    if schedule.get("dosage"):
        return f"{schedule['name']} ({schedule['dosage']})"
    return schedule["name"]


def first_fire(at: dtime, now: datetime) -> datetime:
    """Today at ``at`` unless that whole minute is already over, else tomorrow."""
    candidate = now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    if candidate + timedelta(minutes=1) <= now:
        candidate += timedelta(days=1)
    return candidate


class Notifier:
    """Delivers reminders through ``send`` once permission is granted.

    Without a ``send`` capability, or with permission denied, notifications are
    skipped and ``alert`` (if any) is used instead.
    """

    def __init__(self, send: Optional[Callable[[str, str], None]] = None,
                 alert: Optional[Callable[[str], None]] = None,
                 permission: Optional[str] = None):
        self.send = send
        self.alert = alert
        if send is None:
            self.permission = "unavailable"
        else:
            self.permission = permission or "granted"

    def notify(self, title: str, body: str) -> bool:
        if self.permission == "granted":
            try:
                self.send(title, body)
                return True
            except Exception:
                logger.exception("Notification error")
        else:
            logger.debug("Notifications %s, skipping: %s", self.permission, body)
        if self.alert is not None:
            try:
                self.alert(f"{title}\n{body}")
            except Exception:
                logger.exception("Alert error")
        return False


@dataclass
class ReminderTask:
    key: str
    schedule: dict
    fire_at: datetime

    def advance(self, now: datetime) -> None:
        while self.fire_at <= now:
            self.fire_at += timedelta(days=1)


class ReminderScheduler:
    JOB_ID = "reminder_tick"

    def __init__(self, notifier: Notifier, clock: Callable[[], datetime] = datetime.now,
                 grace: timedelta = timedelta(minutes=15)):
        self.notifier = notifier
        self.clock = clock
        self.grace = grace
        self.tasks: Dict[str, ReminderTask] = {}
        self.scheduler: Optional[BaseScheduler] = None

    def load(self, schedules: Iterable[dict]) -> None:
        """Replace the schedule snapshot.

        Tasks for schedules already known keep their ``fire_at`` so reloading
        never repeats a reminder; schedules no longer present are dropped.
        """
        now = self.clock()
        tasks: Dict[str, ReminderTask] = {}
        for schedule in schedules:
            key = reminder_key(schedule)
            try:
                at = parse_time(schedule.get("time"))
            except ValueError:
                logger.warning("Skipping schedule %s with bad time %r", key, schedule.get("time"))
                continue
            existing = self.tasks.get(key)
            if existing is not None and existing.schedule.get("time") == schedule["time"]:
                existing.schedule = schedule
                tasks[key] = existing
            else:
                tasks[key] = ReminderTask(key, schedule, first_fire(at, now))
        self.tasks = tasks

    def tick(self) -> List[dict]:
        now = self.clock()
        fired = []
        for task in list(self.tasks.values()):
            if task.fire_at > now:
                continue
            late = now - task.fire_at
            try:
                if late <= self.grace:
                    logger.info("Reminder due at %s: %s", format_clock(task.fire_at), task.key)
                    self.notifier.notify(REMINDER_TITLE, reminder_body(task.schedule))
                    fired.append(task.schedule)
                else:
                    logger.warning("Missed reminder %s at %s (%s late)", task.key, format_clock(task.fire_at), late)
            except Exception:
                logger.exception("Reminder %s failed", task.key)
            finally:
                task.advance(now)
        return fired

    def next_fire(self) -> Optional[datetime]:
        if not self.tasks:
            return None
        return min(task.fire_at for task in self.tasks.values())

    def start(self, period: float = 30, blocking: bool = False) -> BaseScheduler:
        """Run ``tick`` every ``period`` seconds on an APScheduler interval job.

        A background scheduler returns immediately and is shut down at exit;
        a blocking one runs in the calling thread until ``stop``.
        """
        self.scheduler = BlockingScheduler() if blocking else BackgroundScheduler()
        self.scheduler.add_job(self.tick, "interval", seconds=period, id=self.JOB_ID,
                               max_instances=1, coalesce=True)
        if not blocking:
            atexit.register(self.stop)
        self.scheduler.start()
        return self.scheduler

    def stop(self) -> None:
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
