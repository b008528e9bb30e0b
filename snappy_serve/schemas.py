"""
Pydantic Schemas for Records, Requests and Responses

Wire field names are camelCase (``tableNumber``, ``customerName``...) to stay
compatible with the existing ordering UI and kitchen dashboard. Python code
uses snake_case attributes; the alias generator maps between the two and
``populate_by_name`` lets services build records with either spelling.

Timestamps are integers in milliseconds since the epoch.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from snappy_serve.services.lifecycle import OrderStatus


class CamelModel(BaseModel):
    """Base model serializing to camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# RECORDS
# =============================================================================

class LineItem(CamelModel):
    """Single item on an order or bill. Unknown client fields are kept."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[str] = Field(None, examples=["tea-1"])
    name: str = Field(..., min_length=1, max_length=100, examples=["Masala Chai"])
    price: int = Field(..., ge=0, examples=[30])
    quantity: int = Field(default=1, ge=1, examples=[2])

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return str(v)

    @property
    def line_total(self) -> int:
        return self.price * self.quantity


class Order(CamelModel):
    """An order placed from a table or the customer UI."""
    id: str
    table_number: Optional[int] = None
    customer_name: str = "Guest"
    customer_phone: Optional[str] = None
    items: list[LineItem]
    total_amount: int = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PENDING
    created_at: int
    updated_at: Optional[int] = None

    @computed_field
    @property
    def timestamp(self) -> int:
        """Creation time under the name the kitchen dashboard reads."""
        return self.created_at


class Bill(CamelModel):
    """Immutable bill with a snapshot of the items it charges for."""
    id: str
    order_id: Optional[str] = None
    table_number: Optional[int] = None
    customer_name: str = "Guest"
    customer_phone: Optional[str] = None
    items: list[LineItem]
    subtotal: int = Field(..., ge=0)
    tax: int = Field(..., ge=0)
    service: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    created_at: int


class Customer(CamelModel):
    """Last-known details for a phone number."""
    phone: str
    name: Optional[str] = None
    table_number: Optional[int] = None
    verified_at: Optional[int] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderCreate(CamelModel):
    """Request schema for creating a new order."""
    table_number: Optional[int] = Field(None, ge=1, examples=[4])
    customer_name: Optional[str] = Field(None, max_length=100, examples=["Asha"])
    customer_phone: Optional[str] = Field(None, max_length=40, examples=["+919876543210"])
    items: list[LineItem] = Field(default_factory=list)
    total_amount: Optional[int] = Field(None, ge=0)


class OrderStatusUpdate(CamelModel):
    """PATCH body for an order. A missing status leaves the order untouched."""
    status: Optional[str] = Field(None, examples=["PREPARING"])


class BillCreate(CamelModel):
    """Request schema for generating a bill."""
    order_id: Optional[str] = Field(None, examples=["ORD-3f2a9c1b7d4e"])
    table_number: Optional[int] = Field(None, ge=1)
    customer_name: Optional[str] = Field(None, max_length=100)
    customer_phone: Optional[str] = Field(None, max_length=40)
    items: list[LineItem] = Field(default_factory=list)


class CustomerUpsert(CamelModel):
    phone: Optional[str] = Field(None, max_length=40)
    name: Optional[str] = Field(None, max_length=100)
    table_number: Optional[int] = Field(None, ge=1)


class OtpRequest(CamelModel):
    phone: Optional[str] = Field(None, max_length=40, examples=["0455 123 456"])


class OtpVerifyRequest(CamelModel):
    phone: Optional[str] = Field(None, max_length=40)
    code: Optional[str] = Field(None, max_length=10, examples=["4821"])

    @field_validator("code", mode="before")
    @classmethod
    def stringify_code(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return str(v)


class NotificationSendRequest(CamelModel):
    phone: Optional[str] = Field(None, max_length=40)
    message: Optional[str] = Field(None, max_length=1600)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderCreateResponse(CamelModel):
    success: bool = True
    order_id: str


class OrderUpdateResponse(CamelModel):
    success: bool = True
    order: Order


class BillResponse(CamelModel):
    success: bool = True
    bill: Bill


class BillBatchResponse(CamelModel):
    success: bool = True
    bills: list[Bill]


class CustomerResponse(CamelModel):
    success: bool = True
    customer: Customer


class OtpRequestResponse(CamelModel):
    success: bool = True
    phone: str
    code: Optional[str] = None


class OtpVerifyResponse(CamelModel):
    success: bool = True
    phone: str


class NotificationSendResponse(CamelModel):
    success: bool = True
    message_id: Optional[str] = None
    provider: str


class ReportExportResponse(CamelModel):
    success: bool = True
    task_id: str
    date: str


class ErrorResponse(CamelModel):
    """Standard error response."""
    success: bool = False
    message: str
    error: Optional[str] = None


class HealthResponse(CamelModel):
    """Health check response."""
    status: str
    storage: str
    notification_service: str
    report_queue: str
    timestamp: int


# =============================================================================
# REPORT SCHEMAS
# =============================================================================

class TopItem(CamelModel):
    name: str
    quantity: int
    revenue: int


class HourlyBucket(CamelModel):
    hour: str
    orders: int
    revenue: int


class DailyBucket(CamelModel):
    day: str
    date: str
    orders: int
    revenue: int


class WeeklyBucket(CamelModel):
    week: str
    orders: int
    revenue: int


class ReportSummary(CamelModel):
    total_orders: int
    total_revenue: int
    average_order_value: float
    total_customers: int
    top_items: list[TopItem]


class DailyReport(ReportSummary):
    date: str
    hourly_breakdown: list[HourlyBucket]


class WeeklyReport(ReportSummary):
    week: str
    daily_breakdown: list[DailyBucket]


class MonthlyReport(ReportSummary):
    month: str
    weekly_breakdown: list[WeeklyBucket]
