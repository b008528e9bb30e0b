"""
FastAPI Application Entry Point

Snappy Serve Cafe - table ordering, billing and OTP check-in.
Supports both Mock services (development) and Twilio (production).

Endpoints:
    - GET/POST /orders, GET/PATCH /orders/{id}: Kitchen order lifecycle
    - POST /bills, GET /bills/{id}, GET /bills/by-customer/{phone}: Billing
    - POST/GET /customers: Customer profiles
    - POST /otp, POST /otp/verify: Phone verification
    - POST /notifications/send: Direct WhatsApp/SMS message
    - GET /reports/daily|weekly|monthly: Sales reports
    - POST /reports/daily/export: Queue Excel export (Celery)
    - GET /health: System health check
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from kombu.exceptions import OperationalError
import redis
from redis.exceptions import RedisError

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from snappy_serve.core.config import Settings, get_settings, setup_logging
from snappy_serve.core.errors import ErrorKind, ServiceResult
from snappy_serve.core.time_utils import get_zone, now_ms, parse_date
from snappy_serve.schemas import (
    Bill,
    BillBatchResponse,
    BillCreate,
    BillResponse,
    Customer,
    CustomerResponse,
    CustomerUpsert,
    DailyReport,
    ErrorResponse,
    HealthResponse,
    MonthlyReport,
    NotificationSendRequest,
    NotificationSendResponse,
    Order,
    OrderCreate,
    OrderCreateResponse,
    OrderStatusUpdate,
    OrderUpdateResponse,
    OtpRequest,
    OtpRequestResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
    ReportExportResponse,
    WeeklyReport,
)
from snappy_serve.services.notifications import NotificationDispatcher, build_notification_service
from snappy_serve.services.orders import CafeService
from snappy_serve.services.otp import OtpSessionManager
from snappy_serve.services.phone import is_valid_phone, normalize_phone
from snappy_serve.services.storage import open_store
from snappy_serve.tasks import export_daily_report

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def error_response(result: ServiceResult) -> JSONResponse:
    """Turn a failed result into ``{success: false, message, error}``."""
    body = ErrorResponse(message=result.message or "Request failed", error=result.error.value)
    return JSONResponse(status_code=result.http_status, content=body.model_dump(by_alias=True))


def fail(kind: ErrorKind, message: str) -> JSONResponse:
    return error_response(ServiceResult.fail(kind, message))


def parse_report_date(value: Optional[str], settings: Settings):
    try:
        return parse_date(value, get_zone(settings.report_timezone))
    except ValueError:
        return None


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API around one set of settings (tests pass their own)."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application startup and shutdown events.
        """
        # Startup
        logger.info("=" * 60)
        logger.info(f"🚀 Starting {settings.app_name}")
        logger.info(f"   Version: {settings.app_version}")
        logger.info(f"   Environment: {settings.env_mode.value}")
        logger.info(f"   Debug: {settings.debug}")
        logger.info("=" * 60)

        store = await open_store(settings)
        logger.info(f"✅ Storage: {store.backend_name}")

        notifications = build_notification_service(settings)
        dispatcher = NotificationDispatcher(notifications)
        logger.info(f"✅ Notification Service: {notifications.provider_name}")

        if settings.use_real_services:
            missing = settings.validate_production_config()
            if missing:
                logger.warning(f"⚠️ Missing production config: {missing}")

        app.state.settings = settings
        app.state.store = store
        app.state.notifications = notifications
        app.state.dispatcher = dispatcher
        app.state.otp = OtpSessionManager(
            store=store,
            dispatcher=dispatcher,
            default_country_code=settings.default_country_code,
            ttl_seconds=settings.otp_ttl_seconds,
            max_attempts=settings.otp_max_attempts,
        )
        app.state.cafe = CafeService(
            store=store,
            dispatcher=dispatcher,
            default_country_code=settings.default_country_code,
            tax_rate_percent=settings.tax_rate_percent,
            service_rate_percent=settings.service_rate_percent,
            report_tz=get_zone(settings.report_timezone),
        )

        logger.info("=" * 60)
        logger.info("✅ Application ready!")
        logger.info("=" * 60)

        yield  # Application runs

        # Shutdown
        logger.info("Shutting down...")
        await dispatcher.drain()
        await store.close()
        logger.info("✅ Cleanup complete")

    app = FastAPI(
        title=settings.app_name,
        description="Cafe table ordering: kitchen lifecycle, bills, OTP check-in and sales reports.",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def cafe(request: Request) -> CafeService:
        return request.app.state.cafe

    # =========================================================================
    # ROOT & HEALTH ENDPOINTS
    # =========================================================================

    @app.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """API root with navigation links."""
        return {
            "message": f"☕ Welcome to {settings.app_name}",
            "version": settings.app_version,
            "environment": settings.env_mode.value,
            "documentation": "/docs",
            "health": "/health",
        }

    @app.get("/health", response_model=HealthResponse, tags=["Health"], summary="System Health Check")
    async def health_check(request: Request) -> HealthResponse:
        """Report store and notification gateway status."""
        store = request.app.state.store
        notifications = request.app.state.notifications

        store_ok = await store.health_check()
        notifications_ok = await notifications.health_check()
        if not store_ok:
            logger.error(f"Storage health check failed ({store.backend_name})")

        # Report exports degrade on their own; the queue does not affect overall status
        queue_status = "healthy"
        try:
            r = redis.Redis.from_url(settings.redis_url, socket_timeout=2, socket_connect_timeout=2)
            r.ping()
            r.close()
        except RedisError as e:
            queue_status = f"unhealthy: {e}"
            logger.warning(f"Redis health check failed: {e}")

        return HealthResponse(
            status="operational" if store_ok and notifications_ok else "degraded",
            storage=f"{store.backend_name}: {'healthy' if store_ok else 'unhealthy'}",
            notification_service=f"{notifications.provider_name}: {'healthy' if notifications_ok else 'unhealthy'}",
            report_queue=queue_status,
            timestamp=now_ms(),
        )

    # =========================================================================
    # ORDER ENDPOINTS
    # =========================================================================

    @app.get("/orders", response_model=list[Order], responses=ERROR_RESPONSES, tags=["Orders"])
    async def list_orders(
        request: Request,
        status: Optional[str] = Query(None),
        exclude_completed: bool = Query(False, alias="excludeCompleted"),
        since: Optional[int] = Query(None, ge=0),
    ):
        """Kitchen view: oldest first, optionally filtered."""
        result = await cafe(request).list_orders(status, exclude_completed, since)
        if not result.success:
            return error_response(result)
        return result.value

    @app.get("/orders/{order_id}", response_model=Order, responses=ERROR_RESPONSES, tags=["Orders"])
    async def get_order(order_id: str, request: Request):
        result = await cafe(request).get_order(order_id)
        if not result.success:
            return error_response(result)
        return result.value

    @app.post(
        "/orders",
        response_model=OrderCreateResponse,
        status_code=201,
        responses=ERROR_RESPONSES,
        tags=["Orders"],
        summary="Place Order",
    )
    async def create_order(payload: OrderCreate, request: Request):
        logger.info(f"Creating order for table {payload.table_number}")
        result = await cafe(request).create_order(payload)
        if not result.success:
            return error_response(result)
        return OrderCreateResponse(order_id=result.value.id)

    @app.patch(
        "/orders/{order_id}",
        response_model=OrderUpdateResponse,
        responses=ERROR_RESPONSES,
        tags=["Orders"],
        summary="Update Order Status",
    )
    async def update_order(order_id: str, payload: OrderStatusUpdate, request: Request):
        result = await cafe(request).update_order_status(order_id, payload.status)
        if not result.success:
            return error_response(result)
        return OrderUpdateResponse(order=result.value)

    # =========================================================================
    # BILL ENDPOINTS
    # =========================================================================

    @app.post(
        "/bills",
        response_model=BillResponse,
        status_code=201,
        responses=ERROR_RESPONSES,
        tags=["Bills"],
        summary="Generate Bill",
    )
    async def create_bill(payload: BillCreate, request: Request):
        """
        Compute subtotal, tax and service charge and store the bill.

        With ``orderId`` the bill copies that order and completes it; with a
        phone the customer is messaged in the background.
        """
        result = await cafe(request).create_bill(payload)
        if not result.success:
            return error_response(result)
        return BillResponse(bill=result.value)

    @app.get("/bills/by-customer/{phone}", response_model=list[Bill], responses=ERROR_RESPONSES, tags=["Bills"])
    async def bills_by_customer(phone: str, request: Request):
        result = await cafe(request).list_bills_by_customer(phone)
        if not result.success:
            return error_response(result)
        return result.value

    @app.get("/bills/{bill_id}", response_model=Bill, responses=ERROR_RESPONSES, tags=["Bills"])
    async def get_bill(bill_id: str, request: Request):
        result = await cafe(request).get_bill(bill_id)
        if not result.success:
            return error_response(result)
        return result.value

    # =========================================================================
    # CUSTOMER ENDPOINTS
    # =========================================================================

    @app.post("/customers", response_model=CustomerResponse, responses=ERROR_RESPONSES, tags=["Customers"])
    async def upsert_customer(payload: CustomerUpsert, request: Request):
        result = await cafe(request).upsert_customer(payload)
        if not result.success:
            return error_response(result)
        return CustomerResponse(customer=result.value)

    @app.get("/customers", response_model=list[Customer], tags=["Customers"])
    async def list_customers(request: Request):
        result = await cafe(request).list_customers()
        return result.value

    # =========================================================================
    # OTP ENDPOINTS
    # =========================================================================

    @app.post("/otp", response_model=OtpRequestResponse, responses=ERROR_RESPONSES, tags=["OTP"])
    async def request_otp(payload: OtpRequest, request: Request):
        """Issue a 4-digit code and send it by WhatsApp/SMS."""
        result = request.app.state.otp.request_otp(payload.phone)
        if not result.success:
            return error_response(result)

        issued = result.value
        return OtpRequestResponse(
            phone=issued.phone,
            code=issued.code if settings.expose_otp_codes else None,
        )

    @app.post("/otp/verify", response_model=OtpVerifyResponse, responses=ERROR_RESPONSES, tags=["OTP"])
    async def verify_otp(payload: OtpVerifyRequest, request: Request):
        result = await request.app.state.otp.verify_otp(payload.phone, payload.code)
        if not result.success:
            return error_response(result)
        return OtpVerifyResponse(phone=result.value.phone)

    @app.get("/debug/otps", tags=["Development"])
    async def debug_otps(request: Request):
        """Outstanding codes (development only)."""
        if not settings.is_development:
            return fail(ErrorKind.NOT_FOUND, "Not found")
        return request.app.state.otp.pending()

    # =========================================================================
    # NOTIFICATION ENDPOINTS
    # =========================================================================

    @app.post(
        "/notifications/send",
        response_model=NotificationSendResponse,
        responses={**ERROR_RESPONSES, 502: {"model": ErrorResponse}},
        tags=["Notifications"],
    )
    async def send_notification(payload: NotificationSendRequest, request: Request):
        """Send a message and wait for the gateway's answer."""
        if not payload.phone or not payload.message:
            return fail(ErrorKind.VALIDATION, "Phone and message required")
        if not is_valid_phone(payload.phone, settings.default_country_code):
            return fail(ErrorKind.INVALID_PHONE, "Invalid phone format")

        phone = normalize_phone(payload.phone, settings.default_country_code)
        outcome = await request.app.state.notifications.send(phone, payload.message)
        if not outcome.delivered:
            logger.warning(f"Direct message to {phone} failed: {outcome.reason}")
            return fail(ErrorKind.DELIVERY_FAILED, outcome.reason or "Message not delivered")
        return NotificationSendResponse(message_id=outcome.message_id, provider=outcome.provider)

    # =========================================================================
    # REPORT ENDPOINTS
    # =========================================================================

    @app.get("/reports/daily", response_model=DailyReport, responses=ERROR_RESPONSES, tags=["Reports"])
    async def daily_report(request: Request, date: Optional[str] = Query(None)):
        day = parse_report_date(date, settings)
        if day is None:
            return fail(ErrorKind.VALIDATION, "Invalid date, expected YYYY-MM-DD")
        result = await cafe(request).daily_report(day)
        return result.value

    @app.get("/reports/weekly", response_model=WeeklyReport, responses=ERROR_RESPONSES, tags=["Reports"])
    async def weekly_report(request: Request, date: Optional[str] = Query(None)):
        day = parse_report_date(date, settings)
        if day is None:
            return fail(ErrorKind.VALIDATION, "Invalid date, expected YYYY-MM-DD")
        result = await cafe(request).weekly_report(day)
        return result.value

    @app.get("/reports/monthly", response_model=MonthlyReport, responses=ERROR_RESPONSES, tags=["Reports"])
    async def monthly_report(request: Request, date: Optional[str] = Query(None)):
        day = parse_report_date(date, settings)
        if day is None:
            return fail(ErrorKind.VALIDATION, "Invalid date, expected YYYY-MM-DD")
        result = await cafe(request).monthly_report(day)
        return result.value

    @app.post(
        "/reports/daily/export",
        response_model=ReportExportResponse,
        status_code=202,
        responses={**ERROR_RESPONSES, 503: {"model": ErrorResponse}},
        tags=["Reports"],
        summary="Queue Excel Export",
    )
    async def export_report(request: Request, date: Optional[str] = Query(None)):
        """Compute the daily report now and hand it to the Celery worker."""
        day = parse_report_date(date, settings)
        if day is None:
            return fail(ErrorKind.VALIDATION, "Invalid date, expected YYYY-MM-DD")

        result = await cafe(request).daily_report(day)
        try:
            task = export_daily_report.delay(result.value.model_dump(by_alias=True))
        except OperationalError as e:
            logger.error(f"Could not queue report export for {day}: {e}")
            return fail(ErrorKind.STORAGE_UNAVAILABLE, "Report queue unavailable")

        logger.info(f"Report export for {day} queued as task {task.id}")
        return ReportExportResponse(task_id=task.id, date=day.isoformat())

    # =========================================================================
    # DEVELOPMENT ENDPOINTS
    # =========================================================================

    @app.post("/admin/generate-test-bills", response_model=BillBatchResponse, tags=["Development"])
    async def generate_test_bills(request: Request):
        """Seed two sample bills for dashboard testing (development only)."""
        if not settings.is_development:
            return fail(ErrorKind.NOT_FOUND, "Not found")
        result = await cafe(request).generate_sample_bills()
        if not result.success:
            return error_response(result)
        return BillBatchResponse(bills=result.value)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed request bodies get the same error shape as core validation."""
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
            message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
        else:
            message = "Invalid request"
        return fail(ErrorKind.VALIDATION, message)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all exception handler."""
        logger.exception(f"Unhandled exception: {exc}")

        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal Server Error",
                "detail": str(exc) if settings.debug else "An unexpected error occurred",
            },
        )

    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "snappy_serve.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
