"""
HTTP surface for the scheduling engine.

Every resolver query is an idempotent GET; every write goes through the
admission controller. Engine errors are rendered in the
``{"success": false, "error": {...}}`` envelope with the status code the
error class carries, so a 409 always means "pick another slot" and a 503
is the only response worth retrying.

Usage:
    app = create_app(build_engine(seed_demo_data=True))
    uvicorn.run(app)
"""

import uuid
from typing import Any, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salon_scheduler import __version__
from salon_scheduler.config import AppConfig, settings
from salon_scheduler.engine import SchedulingEngine, build_engine
from salon_scheduler.errors import InvalidBookingRequestError, SchedulingError
from salon_scheduler.logging_context import get_request_logger, set_request_id
from salon_scheduler.scheduling.admission import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from salon_scheduler.schemas.booking_schema import (
    BookingRequest,
    BookingStatus,
    BookingUpdate,
    RescheduleRequest,
    StatusChangeRequest,
)

logger = get_request_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _ok(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def create_app(engine: Optional[SchedulingEngine] = None, config: AppConfig = settings) -> FastAPI:
    """Build the FastAPI app around an engine (a fresh empty one by default)."""
    app = FastAPI(title="Salon Scheduling API", version=__version__)
    app.state.engine = engine or build_engine(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or f"REQ-{uuid.uuid4().hex[:12]}"
        set_request_id(request_id)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(SchedulingError)
    async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s %s rejected (%s): %s", request.method, request.url.path, exc.kind, exc.message)
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = InvalidBookingRequestError(
            "Request validation failed",
            details={"errors": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
            ]},
        )
        return JSONResponse(status_code=error.http_status, content=error.to_dict())

    def _engine() -> SchedulingEngine:
        return app.state.engine

    # ------------------------------------------------------------------ #
    # Availability queries
    # ------------------------------------------------------------------ #

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "service": config.service_name, "version": __version__}

    @app.get("/availability/time-slots")
    def available_time_slots(provider_id: str = Query(...), date: str = Query(...)):
        slots = _engine().resolver.list_available_slots(provider_id, date)
        return _ok({"provider_id": provider_id, "date": date, "slots": slots})

    @app.get("/availability/providers")
    def available_providers(salon_id: str = Query(...), date: str = Query(...)):
        providers = sorted(_engine().resolver.list_available_providers(salon_id, date))
        return _ok({"salon_id": salon_id, "date": date, "providers": providers})

    @app.get("/availability/check")
    def check_slot(
        provider_id: str = Query(...),
        date: str = Query(...),
        time_slot: str = Query(...),
    ):
        available = _engine().resolver.check_slot(provider_id, date, time_slot)
        return _ok({"provider_id": provider_id, "date": date, "time_slot": time_slot,
                    "available": available})

    @app.get("/availability/status")
    def availability_status(provider_id: str = Query(...), date: str = Query(...)):
        status = _engine().resolver.status_for(provider_id, date)
        return _ok(status.model_dump(mode="json"))

    @app.get("/availability/unavailable")
    def unavailable_slots(provider_id: str = Query(...), date: str = Query(...)):
        reasons = _engine().resolver.unavailable_reasons(provider_id, date)
        return _ok({label: reason.model_dump(mode="json") for label, reason in reasons.items()})

    @app.get("/availability/dates")
    def available_dates(
        provider_id: str = Query(...),
        start: Optional[str] = Query(None),
        days: Optional[int] = Query(None, ge=1, le=366),
    ):
        dates = _engine().resolver.available_dates(provider_id, start=start, days=days)
        return _ok([d.isoformat() for d in dates])

    @app.get("/availability/all-time-slots")
    def all_time_slots(
        start_hour: Optional[int] = Query(None, ge=0, le=23),
        end_hour: Optional[int] = Query(None, ge=1, le=24),
        interval: Optional[int] = Query(None, ge=5, le=120),
    ):
        try:
            return _ok(_engine().resolver.all_time_slots(start_hour, end_hour, interval))
        except ValueError as exc:
            raise InvalidBookingRequestError(str(exc)) from exc

    # ------------------------------------------------------------------ #
    # Bookings
    # ------------------------------------------------------------------ #

    @app.post("/bookings", status_code=201)
    def create_booking(request: BookingRequest):
        booking = _engine().admission.create_booking(
            request.provider_id,
            request.date,
            request.start_time,
            duration=request.duration,
            services=request.services,
            customer_id=request.customer_id,
            notes=request.notes,
        )
        return _ok(booking.model_dump(mode="json"))

    @app.get("/bookings/customer/{customer_id}")
    def list_customer_bookings(
        customer_id: str,
        status: Optional[BookingStatus] = Query(None),
        page: int = Query(1, ge=1),
        limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    ):
        listing = _engine().admission.list_customer_bookings(
            customer_id, status=status, page=page, limit=limit
        )
        return _ok(listing.model_dump(mode="json"))

    @app.get("/bookings/salon/{salon_id}")
    def list_salon_bookings(
        salon_id: str,
        status: Optional[BookingStatus] = Query(None),
        date: Optional[str] = Query(None),
        page: int = Query(1, ge=1),
        limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    ):
        listing = _engine().admission.list_salon_bookings(
            salon_id, status=status, day=date, page=page, limit=limit
        )
        return _ok(listing.model_dump(mode="json"))

    @app.get("/bookings/{booking_id}")
    def get_booking(booking_id: str):
        return _ok(_engine().admission.get_booking(booking_id).model_dump(mode="json"))

    @app.patch("/bookings/{booking_id}")
    def update_booking(booking_id: str, update: BookingUpdate):
        booking = _engine().admission.update_booking(
            booking_id,
            day=update.date,
            start_time=update.start_time,
            duration=update.duration,
            services=update.services,
            notes=update.notes,
        )
        return _ok(booking.model_dump(mode="json"))

    @app.post("/bookings/{booking_id}/cancel")
    def cancel_booking(booking_id: str, change: Optional[StatusChangeRequest] = None):
        change = change or StatusChangeRequest()
        booking = _engine().admission.cancel_booking(booking_id, actor=change.actor, reason=change.reason)
        return _ok(booking.model_dump(mode="json"))

    @app.post("/bookings/{booking_id}/confirm")
    def confirm_booking(booking_id: str, change: Optional[StatusChangeRequest] = None):
        actor = change.actor if change else None
        return _ok(_engine().admission.confirm_booking(booking_id, actor=actor).model_dump(mode="json"))

    @app.post("/bookings/{booking_id}/complete")
    def complete_booking(booking_id: str, change: Optional[StatusChangeRequest] = None):
        actor = change.actor if change else None
        return _ok(_engine().admission.complete_booking(booking_id, actor=actor).model_dump(mode="json"))

    @app.post("/bookings/{booking_id}/no-show")
    def mark_no_show(booking_id: str, change: Optional[StatusChangeRequest] = None):
        actor = change.actor if change else None
        return _ok(_engine().admission.mark_no_show(booking_id, actor=actor).model_dump(mode="json"))

    @app.post("/bookings/{booking_id}/reschedule", status_code=201)
    def reschedule_booking(booking_id: str, request: RescheduleRequest):
        booking = _engine().admission.reschedule_booking(
            booking_id, request.date, request.start_time, actor=request.actor
        )
        return _ok(booking.model_dump(mode="json"))

    return app
