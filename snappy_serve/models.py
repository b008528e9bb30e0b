"""
SQLAlchemy Database Models

Tables backing the SQL store. Line items are stored as JSON documents in
the same camelCase shape the API returns, and timestamps as epoch
milliseconds, so rows convert to and from the pydantic records without
reshaping.
"""

from sqlalchemy import Column, Integer, BigInteger, String, JSON, Enum

from snappy_serve.database import Base
from snappy_serve.services.lifecycle import OrderStatus


class OrderRecord(Base):
    """Orders placed from tables or the customer UI."""
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True)
    table_number = Column(Integer, nullable=True, index=True)
    customer_name = Column(String(100), nullable=False, default="Guest")
    customer_phone = Column(String(40), nullable=True, index=True)
    items = Column(JSON, nullable=False)
    total_amount = Column(BigInteger, nullable=False)
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    created_at = Column(BigInteger, nullable=False, index=True)
    updated_at = Column(BigInteger, nullable=True)

    def __repr__(self):
        return f"<Order {self.id} - table {self.table_number} - {self.status.value}>"


class BillRecord(Base):
    """Immutable bills; no update path exists."""
    __tablename__ = "bills"

    id = Column(String(64), primary_key=True)
    order_id = Column(String(64), nullable=True)
    table_number = Column(Integer, nullable=True)
    customer_name = Column(String(100), nullable=False, default="Guest")
    customer_phone = Column(String(40), nullable=True, index=True)
    items = Column(JSON, nullable=False)
    subtotal = Column(BigInteger, nullable=False)
    tax = Column(BigInteger, nullable=False)
    service = Column(BigInteger, nullable=False)
    total = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=False, index=True)

    def __repr__(self):
        return f"<Bill {self.id} - {self.customer_name} - {self.total}>"


class CustomerRecord(Base):
    """Last-known customer details keyed by normalized phone."""
    __tablename__ = "customers"

    phone = Column(String(40), primary_key=True)
    name = Column(String(100), nullable=True)
    table_number = Column(Integer, nullable=True)
    verified_at = Column(BigInteger, nullable=True)
    created_at = Column(BigInteger, nullable=True)
    updated_at = Column(BigInteger, nullable=True)

    def __repr__(self):
        return f"<Customer {self.phone}>"
