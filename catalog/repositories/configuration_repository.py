"""Read-only access to the configurable option graph."""
from collections import defaultdict
from typing import Dict, List, Set
import uuid

from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from catalog.models.configuration import (
    ConfigurableOption,
    ConfigurableOptionValue,
    ConfigurationRule,
    option_value_variations,
)
from catalog.models.product import Product, ProductVariation


class ConfigurationRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_options_for(self, product: Product) -> List[ConfigurableOption]:
        """Options of a product in display order, with values and rules loaded."""
        result = await self.db.execute(
            select(ConfigurableOption)
            .where(ConfigurableOption.product_id == product.id)
            .order_by(ConfigurableOption.position.asc(), ConfigurableOption.created_at.asc())
        )
        return list(result.scalars().all())

    async def find_rules_for(self, value: ConfigurableOptionValue) -> List[ConfigurationRule]:
        """
        Rules triggered by a selected value.

        Includes rules bound to the value itself and option-level rules
        (no trigger value) of the value's option, in sort order.
        """
        result = await self.db.execute(
            select(ConfigurationRule)
            .where(
                or_(
                    ConfigurationRule.value_id == value.id,
                    and_(
                        ConfigurationRule.option_id == value.option_id,
                        ConfigurationRule.value_id.is_(None),
                    ),
                )
            )
            .order_by(ConfigurationRule.sort_order.asc(), ConfigurationRule.created_at.asc())
        )
        return list(result.scalars().all())

    async def find_variations_for(self, product: Product, active_only: bool = True) -> List[ProductVariation]:
        stmt = (
            select(ProductVariation)
            .where(ProductVariation.parent_id == product.id)
            .order_by(ProductVariation.position.asc(), ProductVariation.sku.asc())
        )
        if active_only:
            stmt = stmt.where(ProductVariation.is_active == True)  # noqa: E712

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_variation_value_sets(self, product: Product) -> Dict[uuid.UUID, Set[uuid.UUID]]:
        """Map each variation of a product to the ids of the option values it embodies."""
        result = await self.db.execute(
            select(
                option_value_variations.c.variation_id,
                option_value_variations.c.option_value_id,
            )
            .join(ProductVariation, ProductVariation.id == option_value_variations.c.variation_id)
            .where(ProductVariation.parent_id == product.id)
        )
        value_sets: Dict[uuid.UUID, Set[uuid.UUID]] = defaultdict(set)
        for variation_id, option_value_id in result.all():
            value_sets[variation_id].add(option_value_id)
        return dict(value_sets)
