"""
Test Suite Configuration
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, Iterable, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from order_analytics.analytics.currency import CurrencyConverter
from order_analytics.analytics.status import OrderStatusResolver
from order_analytics.config import AnalyticsSettings
from order_analytics.database.models import (
    Base,
    Customer,
    Order,
    OrderItem,
    Product,
    ProductVariant,
)


@pytest.fixture
def analytics_settings() -> AnalyticsSettings:
    """Analytics configuration used by store-backed tests"""
    return AnalyticsSettings(
        base_currency="CZK",
        currency_rates={"EUR": Decimal("25")},
        status_completed=["completed"],
        status_returned=["returned"],
        status_complaint=["complaint"],
        status_cancelled=["cancelled"],
        chunk_size=2,
    )


@pytest.fixture
def converter(analytics_settings) -> CurrencyConverter:
    """CZK converter with EUR at 25"""
    return CurrencyConverter.from_settings(analytics_settings)


@pytest.fixture
def status_resolver(analytics_settings) -> OrderStatusResolver:
    """Status policy where only "completed" counts"""
    return OrderStatusResolver.from_settings(analytics_settings)


@pytest.fixture
async def test_engine():
    """Create test database engine"""
    # one shared connection keeps the in-memory database alive
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


class StoreBuilder:
    """Adds orders, items and catalog rows to the test store"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._codes = 0

    def order(
        self,
        ordered_at: Optional[datetime],
        *,
        shop_id: int = 1,
        status: Optional[str] = "completed",
        email: Optional[str] = None,
        currency: Optional[str] = "CZK",
        total: Optional[str] = None,
        total_base: Optional[str] = None,
        payment: Any = None,
        shipping: Any = None,
        delivery: Optional[Dict[str, Any]] = None,
        billing: Optional[Dict[str, Any]] = None,
        items: Iterable[Dict[str, Any]] = (),
    ) -> Order:
        self._codes += 1
        order = Order(
            shop_id=shop_id,
            code=f"ORD-{self._codes:04d}",
            status=status,
            customer_email=email,
            ordered_at=ordered_at,
            currency_code=currency,
            total_with_vat=Decimal(total) if total is not None else None,
            total_with_vat_base=Decimal(total_base) if total_base is not None else None,
            payment=payment,
            shipping=shipping,
            delivery_address=delivery,
            billing_address=billing,
        )
        for item in items:
            order.items.append(self._item(item))
        self.session.add(order)
        return order

    def _item(self, values: Dict[str, Any]) -> OrderItem:
        values = dict(values)
        for name in ("amount", "price_with_vat"):
            if values.get(name) is not None:
                values[name] = Decimal(str(values[name]))
        values.setdefault("item_type", "product")
        return OrderItem(**values)

    def product(
        self,
        name: str,
        *,
        shop_id: int = 1,
        brand: Optional[str] = None,
        created_at: Optional[datetime] = None,
        variants: Iterable[Dict[str, Any]] = (),
    ) -> Product:
        product = Product(shop_id=shop_id, name=name, brand=brand, created_at=created_at or datetime(2024, 1, 1))
        for variant in variants:
            product.variants.append(ProductVariant(**variant))
        self.session.add(product)
        return product

    def customer(self, email: str, *, shop_id: int = 1, created_at: Optional[datetime] = None) -> Customer:
        customer = Customer(shop_id=shop_id, email=email, created_at=created_at or datetime(2024, 1, 1))
        self.session.add(customer)
        return customer

    async def commit(self) -> None:
        await self.session.commit()


@pytest.fixture
def store(test_db) -> StoreBuilder:
    """Builder for store fixtures"""
    return StoreBuilder(test_db)


def item(name: str, code: Optional[str] = None, amount="1", price="0", **values) -> Dict[str, Any]:
    """Line item values"""
    return {"name": name, "code": code, "amount": amount, "price_with_vat": price, **values}


@pytest.fixture
async def january_store(store) -> StoreBuilder:
    """
    Two shops with a January 2024 period.

    Shop 1, completed, January: a@x.com (returning, first ordered in 2023),
    b@x.com (two orders, new) and one order without email. Plus a cancelled
    order, another shop's order and a February order outside the range.
    """
    store.product(
        "Mug",
        brand="Acme",
        created_at=datetime(2024, 1, 2),
        variants=[{"code": "SKU-1", "name": "Mug Blue"}],
    )
    store.product("Old product", created_at=datetime(2023, 6, 1))
    store.customer("a@x.com", created_at=datetime(2024, 1, 3))
    store.customer("c@x.com", shop_id=2, created_at=datetime(2024, 1, 3))

    store.order(
        datetime(2023, 1, 1, 9, 0),
        email="a@x.com",
        total="100",
        total_base="100",
    )
    store.order(
        datetime(2024, 1, 5, 10, 0),
        email=" A@x.com ",
        currency="EUR",
        total="100",
        payment={"method": "Card"},
        shipping=[{"carrier": "DPD"}],
        delivery={"postalCode": "11000", "city": "Praha"},
        items=[item("Mug", "SKU-1", amount="2", price="100", product_guid="g-mug")],
    )
    store.order(
        datetime(2024, 1, 10, 12, 0),
        email="b@x.com",
        total="300",
        total_base="300",
        payment="Card",
        delivery={"zip": "60200", "town": "Brno", "region": "JM"},
        items=[
            item("Mug", "SKU-1", amount="1", price="300", product_guid="g-mug"),
            item("Plate", "SKU-2", amount="3", price="0", product_guid="g-plate"),
        ],
    )
    store.order(
        datetime(2024, 1, 20, 18, 30),
        email="b@x.com",
        total="200",
        total_base="200",
        payment='{"name": "Bank transfer"}',
        delivery={},
        billing={"postal_code": "60200", "city": "Brno", "state": "JM"},
        items=[item("Mug", "SKU-1", amount="1", price="200", product_guid="g-mug")],
    )
    store.order(
        datetime(2024, 1, 15, 8, 0),
        email=None,
        total="50",
        items=[item("Plate", "SKU-2", amount="1", price="50", product_guid="g-plate")],
    )
    store.order(
        datetime(2024, 1, 12, 8, 0),
        email="c@x.com",
        status="cancelled",
        total="999",
        items=[item("Mug", "SKU-1", amount="5", price="999", product_guid="g-mug")],
    )
    store.order(
        datetime(2024, 1, 18, 8, 0),
        shop_id=2,
        email="c@x.com",
        total="400",
        total_base="400",
        items=[item("Mug", "SKU-1", amount="1", price="400", product_guid="g-mug")],
    )
    store.order(
        datetime(2024, 2, 5, 8, 0),
        email="d@x.com",
        total="700",
        total_base="700",
    )

    await store.commit()
    return store
