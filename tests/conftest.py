"""
Shared fixtures: a fresh file-backed SQLite database per test, plus
builders for warehouses, products, stock and a configurable apparel
product with options and variations.
"""
import os

# Settings are read at import time; tests build their own engines
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from catalog.database import create_engine_for, create_session_factory, init_db  # noqa: E402
from catalog.models.configuration import (  # noqa: E402
    ConfigurableOption,
    ConfigurableOptionValue,
    ConfigurationRule,
    PriceType,
)
from catalog.models.inventory import InventoryRecord  # noqa: E402
from catalog.models.product import (  # noqa: E402
    Attribute,
    AttributeOption,
    PricingInfo,
    Product,
    ProductType,
    ProductVariation,
)
from catalog.models.warehouse import Warehouse  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ==================== BUILDERS ====================

@pytest.fixture
def make_warehouse(session_factory):
    async def _make(code, priority=0, is_active=True, created_at=None):
        async with session_factory() as session:
            warehouse = Warehouse(code=code, name=f"Warehouse {code}", priority=priority, is_active=is_active)
            if created_at is not None:
                warehouse.created_at = created_at
            session.add(warehouse)
            await session.commit()
            return warehouse
    return _make


@pytest.fixture
def make_product(session_factory):
    async def _make(sku, product_type=ProductType.SIMPLE.value, price=1000, weight=1.0, is_active=True, **pricing):
        async with session_factory() as session:
            product = Product(
                sku=sku,
                name=f"Product {sku}",
                product_type=product_type,
                pricing=PricingInfo(price=price, **pricing),
                weight=weight,
                is_active=is_active,
            )
            session.add(product)
            await session.commit()
            return product
    return _make


@pytest.fixture
def make_variation(session_factory):
    async def _make(parent, sku, is_active=True, price=None, weight=None):
        async with session_factory() as session:
            variation = ProductVariation(
                parent_id=parent.id,
                sku=sku,
                pricing=PricingInfo(price=price),
                weight=weight,
                is_active=is_active,
            )
            session.add(variation)
            await session.commit()
            return variation
    return _make


@pytest.fixture
def set_stock(session_factory):
    """Seed a record directly, bypassing the ledger."""
    async def _set(item, warehouse, quantity, reserved=0, backorders_allowed=False, low_stock_threshold=None):
        async with session_factory() as session:
            record = InventoryRecord(
                warehouse_id=warehouse.id,
                quantity=quantity,
                reserved=reserved,
                backorders_allowed=backorders_allowed,
                low_stock_threshold=low_stock_threshold,
            )
            if isinstance(item, ProductVariation):
                record.variation_id = item.id
            else:
                record.product_id = item.id
            session.add(record)
            await session.commit()
            return record
    return _set


@pytest_asyncio.fixture
async def apparel(session_factory):
    """
    Configurable T-shirt priced 1000 with weight 1.0.

    color (required): red +10%, blue -50 fixed, green +0.5 weight
    size (required):  s, m, l +200 fixed and +0.25 weight
    Variations: red/s, blue/m, and two variations both linked to green/l.
    """
    async with session_factory() as session:
        product = Product(
            sku="TSHIRT",
            name="T-Shirt",
            product_type=ProductType.CONFIGURABLE.value,
            pricing=PricingInfo(price=1000, currency="EUR"),
            weight=1.0,
        )
        color = Attribute(code="color", name="Color", options=[
            AttributeOption(value="red", label="Red", position=0),
            AttributeOption(value="blue", label="Blue", position=1),
            AttributeOption(value="green", label="Green", position=2),
        ])
        size = Attribute(code="size", name="Size", options=[
            AttributeOption(value="s", label="Small", position=0),
            AttributeOption(value="m", label="Medium", position=1),
            AttributeOption(value="l", label="Large", position=2),
        ])
        session.add_all([product, color, size])
        await session.flush()

        variations = {
            sku: ProductVariation(parent_id=product.id, sku=sku, pricing=PricingInfo())
            for sku in ("TSHIRT-RED-S", "TSHIRT-BLUE-M", "TSHIRT-GREEN-L", "TSHIRT-GREEN-L-2")
        }
        session.add_all(variations.values())

        red, blue, green = color.options
        small, medium, large = size.options

        color_option = ConfigurableOption(
            product_id=product.id,
            attribute=color,
            is_required=True,
            position=0,
            values=[
                ConfigurableOptionValue(
                    attribute_option=red, price_adjustment=10, price_type=PriceType.PERCENTAGE.value,
                    is_default=True, position=0, variations=[variations["TSHIRT-RED-S"]],
                ),
                ConfigurableOptionValue(
                    attribute_option=blue, price_adjustment=-50, price_type=PriceType.FIXED.value,
                    position=1, variations=[variations["TSHIRT-BLUE-M"]],
                ),
                ConfigurableOptionValue(
                    attribute_option=green, weight_adjustment=0.5, position=2,
                    variations=[variations["TSHIRT-GREEN-L"], variations["TSHIRT-GREEN-L-2"]],
                ),
            ],
        )
        size_option = ConfigurableOption(
            product_id=product.id,
            attribute=size,
            is_required=True,
            position=1,
            values=[
                ConfigurableOptionValue(
                    attribute_option=small, is_default=True, position=0,
                    variations=[variations["TSHIRT-RED-S"]],
                ),
                ConfigurableOptionValue(
                    attribute_option=medium, position=1,
                    variations=[variations["TSHIRT-BLUE-M"]],
                ),
                ConfigurableOptionValue(
                    attribute_option=large, price_adjustment=200, price_type=PriceType.FIXED.value,
                    weight_adjustment=0.25, position=2,
                    variations=[variations["TSHIRT-GREEN-L"], variations["TSHIRT-GREEN-L-2"]],
                ),
            ],
        )
        session.add_all([color_option, size_option])
        await session.commit()

        options = {"color": color_option, "size": size_option}
        values = {
            (option_code, value.code): value
            for option_code, option in options.items()
            for value in option.values
        }
        return SimpleNamespace(product=product, options=options, values=values, variations=variations)


@pytest.fixture
def add_rule(session_factory, apparel):
    """Attach a rule to an apparel option, optionally triggered by one of its values."""
    async def _add(option_code, value_code=None, **fields):
        async with session_factory() as session:
            rule = ConfigurationRule(option_id=apparel.options[option_code].id, **fields)
            if value_code is not None:
                rule.value_id = apparel.values[(option_code, value_code)].id
            session.add(rule)
            await session.commit()
            return rule
    return _add
