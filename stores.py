"""
Credential, schedule and log stores.

Every query on schedules and logs is filtered on the caller's user id, so one
user can never see or change another user's rows.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError
from pydantic import ValidationError as SchemaError

import database
from errors import AuthError, DuplicateEmail, NotFound, ValidationError
from schemas import Log, Schedule, User
from security import create_access_token, decode_access_token, get_password_hash, verify_password

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10


def _object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _schema_message(err: SchemaError) -> str:
    first = err.errors()[0]
    field = ".".join(str(p) for p in first.get("loc", ()))
    return f"{field}: {first['msg']}" if field else first["msg"]


# ---------- Credentials ----------
def get_user_by_email(email: str) -> Optional[dict]:
    return database.require_db()["user"].find_one({"email": email.strip().lower()})


def get_user(user_id: str) -> Optional[dict]:
    oid = _object_id(user_id)
    if oid is None:
        return None
    return database.require_db()["user"].find_one({"_id": oid})


def register_user(name: str, email: str, password: str) -> str:
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name or not email or not password:
        raise ValidationError("All fields are required")
    database.ensure_indexes()
    if get_user_by_email(email):
        raise DuplicateEmail("User already exists")
    try:
        password_hash = get_password_hash(password)
    except ValueError as e:
        raise ValidationError(f"Invalid password: {e}")
    try:
        user = User(name=name, email=email, password_hash=password_hash)
    except SchemaError as e:
        raise ValidationError(_schema_message(e))
    try:
        user_id = database.create_document("user", user)
    except DuplicateKeyError:
        raise DuplicateEmail("User already exists")
    logger.info("User registered: %s", email)
    return user_id


def authenticate(email: str, password: str) -> Tuple[str, dict]:
    user = get_user_by_email(email or "")
    if not user:
        raise AuthError("User not found")
    try:
        matches = verify_password(password or "", user.get("password_hash", ""))
    except ValueError:
        matches = False
    if not matches:
        raise AuthError("Invalid password")
    token = create_access_token({"sub": str(user["_id"]), "email": user["email"]})
    return token, user


def get_user_for_token(token: str) -> dict:
    payload = decode_access_token(token)
    user = get_user(payload["sub"])
    if not user:
        raise AuthError("User not found")
    return user


# ---------- Schedules ----------
def create_schedule(owner_id: str, name: str, time: str, dosage: Optional[str] = None,
                    frequency: str = "daily", duration: Optional[str] = None) -> dict:
    if not (name or "").strip() or not time:
        raise ValidationError("Name and time are required")
    try:
        schedule = Schedule(
            user_id=owner_id,
            name=name.strip(),
            dosage=(dosage or "").strip() or None,
            time=time,
            frequency=frequency or "daily",
            duration=(duration or "").strip() or "N/A",
        )
    except SchemaError as e:
        raise ValidationError(_schema_message(e))
    doc = schedule.model_dump()
    doc["created_at"] = datetime.now(timezone.utc)
    doc["_id"] = ObjectId(database.create_document("schedule", doc))
    logger.info("Schedule saved: %s at %s for user %s", doc["name"], doc["time"], owner_id)
    return doc


def get_schedule(owner_id: str, schedule_id: str) -> Optional[dict]:
    oid = _object_id(schedule_id)
    if oid is None:
        return None
    return database.require_db()["schedule"].find_one({"_id": oid, "user_id": owner_id})


def list_schedules(owner_id: str) -> List[dict]:
    return database.get_documents("schedule", {"user_id": owner_id})


def delete_schedule(owner_id: str, schedule_id: str) -> int:
    """Delete one of the owner's schedules. Unknown, malformed or foreign ids delete nothing."""
    oid = _object_id(schedule_id)
    if oid is None:
        return 0
    res = database.require_db()["schedule"].delete_one({"_id": oid, "user_id": owner_id})
    return res.deleted_count


def delete_all_schedules(owner_id: str) -> int:
    res = database.require_db()["schedule"].delete_many({"user_id": owner_id})
    logger.info("Deleted %d schedules for user %s", res.deleted_count, owner_id)
    return res.deleted_count


# ---------- Logs ----------
def record_log(owner_id: str, schedule_id: str, status: str, now: Optional[datetime] = None) -> dict:
    if not schedule_id or not status:
        raise ValidationError("scheduleId and status required")
    schedule = get_schedule(owner_id, schedule_id)
    if not schedule:
        raise NotFound("Schedule not found")
    now = now or datetime.now(timezone.utc)
    try:
        log = Log(
            user_id=owner_id,
            schedule_id=schedule_id,
            status=status,
            schedule_ref=schedule["name"],
            timestamp=now,
            date=now.astimezone().strftime("%a %b %d %Y"),
        )
    except SchemaError as e:
        raise ValidationError(_schema_message(e))
    doc = log.model_dump()
    doc["_id"] = ObjectId(database.create_document("log", doc))
    logger.info("Log recorded: %s %s for user %s", doc["schedule_ref"], status, owner_id)
    return doc


def history(owner_id: str, limit: int = HISTORY_LIMIT) -> List[dict]:
    cursor = database.require_db()["log"].find({"user_id": owner_id}).sort("timestamp", -1).limit(limit)
    return list(cursor)


def dashboard_stats(owner_id: str) -> dict:
    total = database.require_db()["schedule"].count_documents({"user_id": owner_id})
    taken = sum(1 for log in history(owner_id) if log.get("status") == "taken")
    percent = min(100, int(taken * 100 / total + 0.5)) if total > 0 else 0
    return {"total_medicines": total, "taken": taken, "success_rate": percent}
