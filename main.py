import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException

import database
import stores
from config import Config
from errors import AuthError, SehatError, StoreError
from schemas import Frequency, Status

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# App setup
app = FastAPI(title="Sehat Pulse API", version=Config.APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/response models
class RegisterIn(BaseModel):
    name: str
    email: EmailStr
    password: str


class CredentialsIn(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")


class LoginOut(BaseModel):
    message: str
    token: str
    user: UserOut


class ScheduleIn(BaseModel):
    name: str
    time: str
    dosage: Optional[str] = None
    frequency: Frequency = "daily"
    duration: Optional[str] = None


class ScheduleOut(BaseModel):
    id: str
    name: str
    dosage: Optional[str] = None
    time: str
    frequency: str
    duration: str
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")


class ScheduleSaved(BaseModel):
    message: str
    schedule: ScheduleOut


class LogIn(BaseModel):
    schedule_id: str = Field(..., alias="scheduleId")
    status: Status


class LogOut(BaseModel):
    id: str
    schedule_id: str = Field(..., serialization_alias="scheduleId")
    status: str
    schedule_ref: str = Field(..., serialization_alias="scheduleRef")
    timestamp: datetime
    date: str


class LogSaved(BaseModel):
    message: str
    log: LogOut


class StatsOut(BaseModel):
    total_medicines: int
    taken: int
    success_rate: int


def user_out(user: dict) -> dict:
    return {"id": str(user["_id"]), "name": user.get("name"), "email": user["email"], "created_at": user.get("created_at")}


def schedule_out(s: dict) -> dict:
    return {
        "id": str(s["_id"]),
        "name": s["name"],
        "dosage": s.get("dosage"),
        "time": s["time"],
        "frequency": s.get("frequency", "daily"),
        "duration": s.get("duration") or "N/A",
        "created_at": s.get("created_at"),
    }


def log_out(entry: dict) -> dict:
    return {
        "id": str(entry["_id"]),
        "schedule_id": entry["schedule_id"],
        "status": entry["status"],
        "schedule_ref": entry["schedule_ref"],
        "timestamp": entry["timestamp"],
        "date": entry["date"],
    }


# Error handlers: every failure leaves as {"error": message}
@app.exception_handler(SehatError)
async def sehat_error_handler(request: Request, exc: SehatError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"error": f"{field}: {message}" if field else message})


@app.exception_handler(PyMongoError)
async def store_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Database error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


async def get_current_user(authorization: Optional[str] = Header(None)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Unauthorized")
    token = authorization.split(" ", 1)[1].strip()
    return stores.get_user_for_token(token)


@app.get("/")
def read_root():
    return {"message": "Sehat Pulse API running"}


@app.get("/api/ping")
def ping():
    return {"ok": True, "time": datetime.now(timezone.utc).isoformat()}


@app.get("/api/version")
def version():
    return {"version": Config.APP_VERSION}


# Auth endpoints
@app.post("/api/auth/register")
def register(body: RegisterIn):
    try:
        stores.register_user(body.name, body.email, body.password)
    except PyMongoError:
        logger.exception("Register error")
        raise StoreError("Server error during registration")
    return {"message": "User registered successfully"}


@app.post("/api/auth/login", response_model=LoginOut)
def login(body: CredentialsIn):
    try:
        token, user = stores.authenticate(body.email, body.password)
    except PyMongoError:
        logger.exception("Login error")
        raise StoreError("Server error during login")
    return {"message": "Login successful", "token": token, "user": user_out(user)}


@app.get("/api/me", response_model=UserOut)
async def me(user=Depends(get_current_user)):
    return user_out(user)


# Schedules
@app.post("/api/schedules", response_model=ScheduleSaved)
async def create_schedule(body: ScheduleIn, user=Depends(get_current_user)):
    try:
        doc = stores.create_schedule(
            str(user["_id"]),
            name=body.name,
            time=body.time,
            dosage=body.dosage,
            frequency=body.frequency,
            duration=body.duration,
        )
    except PyMongoError:
        logger.exception("Schedule save error")
        raise StoreError("Server error while saving schedule")
    return {"message": "Schedule saved", "schedule": schedule_out(doc)}


@app.get("/api/schedules", response_model=List[ScheduleOut])
async def get_schedules(user=Depends(get_current_user)):
    try:
        return [schedule_out(s) for s in stores.list_schedules(str(user["_id"]))]
    except PyMongoError:
        logger.exception("Fetch schedules error")
        raise StoreError("Failed to fetch schedules")


# Must be registered before /api/schedules/{schedule_id}
@app.delete("/api/schedules/deleteAll")
async def delete_all_schedules(user=Depends(get_current_user)):
    try:
        stores.delete_all_schedules(str(user["_id"]))
    except PyMongoError:
        logger.exception("Delete all error")
        raise StoreError("Failed to delete schedules")
    return {"success": True, "message": "All schedules deleted"}


@app.delete("/api/schedules/{schedule_id}")
async def delete_schedule(schedule_id: str, user=Depends(get_current_user)):
    try:
        stores.delete_schedule(str(user["_id"]), schedule_id)
    except PyMongoError:
        logger.exception("Delete one error")
        raise StoreError("Failed to delete schedule")
    return {"success": True, "message": "Schedule deleted"}


# Logs
@app.post("/api/logs", response_model=LogSaved)
async def record_log(body: LogIn, user=Depends(get_current_user)):
    try:
        entry = stores.record_log(str(user["_id"]), body.schedule_id, body.status)
    except PyMongoError:
        logger.exception("Log error")
        raise StoreError("Failed to record log")
    return {"message": "Log recorded successfully", "log": log_out(entry)}


@app.get("/api/logs/history", response_model=List[LogOut])
async def get_history(user=Depends(get_current_user)):
    try:
        return [log_out(entry) for entry in stores.history(str(user["_id"]))]
    except PyMongoError:
        logger.exception("Fetch logs error")
        raise StoreError("Failed to fetch logs")


@app.get("/api/stats", response_model=StatsOut)
async def get_stats(user=Depends(get_current_user)):
    try:
        return stores.dashboard_stats(str(user["_id"]))
    except PyMongoError:
        logger.exception("Dashboard stats error")
        raise StoreError("Failed to load stats")


# Health/test
@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if Config.DATABASE_URL else "❌ Not Set",
        "database_name": Config.DATABASE_NAME,
        "connection_status": "Not Connected",
        "collections": [],
    }
    if database.db is None:
        return response
    try:
        response["collections"] = database.db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


def serve() -> None:
    import uvicorn

    try:
        database.check_connection()
    except StoreError as e:
        logger.error("Startup aborted: %s", e)
        sys.exit(1)
    uvicorn.run(app, host="0.0.0.0", port=Config.PORT)


if __name__ == "__main__":
    serve()
