"""
SQL Store

Persistent storage through a SQLAlchemy async engine (PostgreSQL via
psycopg in production). Every driver or connection error is re-raised as
``StorageUnavailable`` so ``FallbackStore`` can degrade to memory.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from snappy_serve.core.errors import StorageUnavailable
from snappy_serve.database import build_engine, build_session_maker, ping, wait_for_db
from snappy_serve.models import BillRecord, CustomerRecord, OrderRecord
from snappy_serve.schemas import Bill, Customer, LineItem, Order
from snappy_serve.services.lifecycle import OrderStatus
from snappy_serve.services.storage.base import BaseStore, OrderFilter

logger = logging.getLogger(__name__)


def _dump_items(items: list[LineItem]) -> list[dict]:
    return [item.model_dump(by_alias=True, exclude_none=True) for item in items]


def _order_from_record(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        table_number=record.table_number,
        customer_name=record.customer_name,
        customer_phone=record.customer_phone,
        items=record.items,
        total_amount=record.total_amount,
        status=record.status,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _bill_from_record(record: BillRecord) -> Bill:
    return Bill(
        id=record.id,
        order_id=record.order_id,
        table_number=record.table_number,
        customer_name=record.customer_name,
        customer_phone=record.customer_phone,
        items=record.items,
        subtotal=record.subtotal,
        tax=record.tax,
        service=record.service,
        total=record.total,
        created_at=record.created_at,
    )


def _customer_from_record(record: CustomerRecord) -> Customer:
    return Customer(
        phone=record.phone,
        name=record.name,
        table_number=record.table_number,
        verified_at=record.verified_at,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class SqlStore(BaseStore):
    """SQLAlchemy-backed storage."""

    def __init__(self, database_url: str, connect_timeout: float = 5.0, echo: bool = False):
        self.database_url = database_url
        self.connect_timeout = connect_timeout
        self.engine = build_engine(database_url, echo=echo)
        self.session_maker = build_session_maker(self.engine)

    @property
    def backend_name(self) -> str:
        return "sql"

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_maker() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            raise StorageUnavailable(f"SQL store error: {e}") from e

    async def connect(self) -> None:
        """
        Create tables, waiting at most ``connect_timeout`` seconds.

        Raises:
            asyncio.TimeoutError: The database did not answer in time
            SQLAlchemyError / OSError: The connection failed
        """
        await wait_for_db(self.engine, self.connect_timeout)
        logger.info("SQL store ready")

    async def close(self) -> None:
        await self.engine.dispose()

    async def health_check(self) -> bool:
        try:
            await ping(self.engine)
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"SQL store health check failed: {e}")
            return False

    # Orders -----------------------------------------------------------------

    async def find_order(self, order_id: str) -> Optional[Order]:
        async with self._session() as session:
            record = await session.get(OrderRecord, order_id)
            return _order_from_record(record) if record else None

    async def upsert_order(self, order: Order) -> Order:
        async with self._session() as session:
            await session.merge(OrderRecord(
                id=order.id,
                table_number=order.table_number,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                items=_dump_items(order.items),
                total_amount=order.total_amount,
                status=order.status,
                created_at=order.created_at,
                updated_at=order.updated_at,
            ))
            await session.commit()
        return order

    async def list_orders(self, order_filter: Optional[OrderFilter] = None) -> list[Order]:
        order_filter = order_filter or OrderFilter()
        query = select(OrderRecord).order_by(OrderRecord.created_at)

        if order_filter.status is not None:
            query = query.where(OrderRecord.status == order_filter.status)
        if order_filter.exclude_completed:
            query = query.where(OrderRecord.status != OrderStatus.COMPLETED)
        if order_filter.since is not None:
            query = query.where(OrderRecord.created_at >= order_filter.since)

        async with self._session() as session:
            result = await session.execute(query)
            return [_order_from_record(r) for r in result.scalars().all()]

    # Bills ------------------------------------------------------------------

    async def find_bill(self, bill_id: str) -> Optional[Bill]:
        async with self._session() as session:
            record = await session.get(BillRecord, bill_id)
            return _bill_from_record(record) if record else None

    async def insert_bill(self, bill: Bill) -> Bill:
        async with self._session() as session:
            session.add(BillRecord(
                id=bill.id,
                order_id=bill.order_id,
                table_number=bill.table_number,
                customer_name=bill.customer_name,
                customer_phone=bill.customer_phone,
                items=_dump_items(bill.items),
                subtotal=bill.subtotal,
                tax=bill.tax,
                service=bill.service,
                total=bill.total,
                created_at=bill.created_at,
            ))
            await session.commit()
        return bill

    async def list_bills(
        self,
        start_ms: Optional[int] = None,
        end_ms: Optional[int] = None,
    ) -> list[Bill]:
        query = select(BillRecord).order_by(BillRecord.created_at)
        if start_ms is not None:
            query = query.where(BillRecord.created_at >= start_ms)
        if end_ms is not None:
            query = query.where(BillRecord.created_at <= end_ms)

        async with self._session() as session:
            result = await session.execute(query)
            return [_bill_from_record(r) for r in result.scalars().all()]

    async def list_bills_by_customer(self, phone: str) -> list[Bill]:
        query = (
            select(BillRecord)
            .where(BillRecord.customer_phone == phone)
            .order_by(BillRecord.created_at.desc())
        )
        async with self._session() as session:
            result = await session.execute(query)
            return [_bill_from_record(r) for r in result.scalars().all()]

    # Customers --------------------------------------------------------------

    async def find_customer(self, phone: str) -> Optional[Customer]:
        async with self._session() as session:
            record = await session.get(CustomerRecord, phone)
            return _customer_from_record(record) if record else None

    async def upsert_customer(self, customer: Customer) -> Customer:
        async with self._session() as session:
            await session.merge(CustomerRecord(
                phone=customer.phone,
                name=customer.name,
                table_number=customer.table_number,
                verified_at=customer.verified_at,
                created_at=customer.created_at,
                updated_at=customer.updated_at,
            ))
            await session.commit()
        return customer

    async def list_customers(self) -> list[Customer]:
        async with self._session() as session:
            result = await session.execute(select(CustomerRecord).order_by(CustomerRecord.created_at))
            return [_customer_from_record(r) for r in result.scalars().all()]
