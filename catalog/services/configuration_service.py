"""
Configuration Rule Engine.

Validates and prices a shopper's selection of configurable options and
maps it to the concrete variation that embodies it.

A selection maps option codes (attribute codes) to value codes
(attribute option values), e.g. {"color": "red", "size": "xl"}.
The engine never writes to the option graph.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from catalog.config import settings
from catalog.models.configuration import (
    ConfigurableOption,
    ConfigurableOptionValue,
    ConfigurationRule,
    RuleType,
)
from catalog.models.product import Product, ProductVariation
from catalog.repositories.configuration_repository import ConfigurationRepository
from catalog.schemas.configuration import (
    AdjustedPriceWeight,
    RuleViolationResponse,
    ValidationResponse,
)
from catalog.services.pricing import format_minor_units

logger = logging.getLogger(__name__)

# Predicate for validation/custom rules: (rule, selection codes) -> passes
RulePredicate = Callable[[ConfigurationRule, Dict[str, str]], bool]

REQUIRED_OPTION = "required_option"


class ConfigurationError(Exception):
    """Invalid selection input: unknown option or value codes."""
    pass


class VariationResolutionError(ConfigurationError):
    """A legal selection that does not map to exactly one variation."""
    pass


class VariationNotFoundError(VariationResolutionError):
    pass


class AmbiguousVariationError(VariationResolutionError):

    def __init__(self, message: str, variations: List[ProductVariation]):
        super().__init__(message)
        self.variations = variations


@dataclass
class RuleViolation:
    """One failed rule."""
    option_code: str
    rule_type: str
    message: str
    rule_id: Optional[uuid.UUID] = None


@dataclass
class ValidationResult:
    """Result of validating a selection."""
    ok: bool = True
    violations: List[RuleViolation] = None

    def __post_init__(self):
        if self.violations is None:
            self.violations = []

    def add(self, violation: RuleViolation) -> None:
        self.violations.append(violation)
        self.ok = False

    def to_response(self) -> ValidationResponse:
        return ValidationResponse(
            ok=self.ok,
            violations=[
                RuleViolationResponse(
                    rule_id=v.rule_id,
                    rule_type=v.rule_type,
                    option_code=v.option_code,
                    message=v.message,
                )
                for v in self.violations
            ],
        )


@dataclass
class ResolvedSelection:
    """Selection codes bound to the product's option graph, in option position order."""
    options: List[ConfigurableOption]
    chosen: Dict[str, ConfigurableOptionValue]

    @property
    def codes(self) -> Dict[str, str]:
        return {code: value.code for code, value in self.chosen.items()}

    @property
    def value_ids(self) -> set:
        return {value.id for value in self.chosen.values()}


class ConfigurationService:
    """
    Rule engine over a product's configurable options.

    Validation and custom rules are delegated to predicates registered
    under the rule's custom_validation key. A rule whose key has no
    predicate fails.
    """

    def __init__(self, db: AsyncSession, evaluators: Optional[Mapping[str, RulePredicate]] = None):
        self.db = db
        self.repository = ConfigurationRepository(db)
        self.evaluators: Dict[str, RulePredicate] = dict(evaluators or {})

    def register_evaluator(self, key: str, predicate: RulePredicate) -> None:
        self.evaluators[key] = predicate

    # ==================== SELECTION ====================

    async def resolve_selection(self, product: Product, selection: Mapping[str, str]) -> ResolvedSelection:
        """
        Bind option/value codes to the product's options.

        Raises:
            ConfigurationError: an option or value code is unknown for this product
        """
        options = await self.repository.find_options_for(product)
        by_code = {option.code: option for option in options}

        unknown = [code for code in selection if code not in by_code]
        if unknown:
            raise ConfigurationError(
                f"Unknown option code(s) for product {product.sku}: {', '.join(sorted(unknown))}"
            )

        chosen: Dict[str, ConfigurableOptionValue] = {}
        for option in options:
            value_code = selection.get(option.code)
            if value_code is None:
                continue
            value = option.value_by_code(value_code)
            if value is None:
                raise ConfigurationError(
                    f"Unknown value '{value_code}' for option '{option.code}' of product {product.sku}"
                )
            chosen[option.code] = value

        return ResolvedSelection(options=options, chosen=chosen)

    async def default_selection(self, product: Product) -> Dict[str, str]:
        """Selection made of each option's default value (first by position)."""
        options = await self.repository.find_options_for(product)
        selection = {}
        for option in options:
            for value in option.values:
                if value.is_default:
                    selection[option.code] = value.code
                    break
        return selection

    # ==================== VALIDATION ====================

    async def validate(self, product: Product, selection: Mapping[str, str]) -> ValidationResult:
        """
        Check a selection against every rule it triggers.

        Rules are evaluated option by option (position order), then by
        sort_order. All rules are checked; a failed rule contributes one
        violation. Price/weight adjustment rules are not checked here.
        """
        resolved = await self.resolve_selection(product, selection)
        codes = resolved.codes
        result = ValidationResult()

        for option in resolved.options:
            if option.is_required and option.code not in resolved.chosen:
                result.add(RuleViolation(
                    option_code=option.code,
                    rule_type=REQUIRED_OPTION,
                    message=f"Please select a value for '{option.attribute.name}'",
                ))

        for option in resolved.options:
            value = resolved.chosen.get(option.code)
            if value is None:
                continue
            for rule in await self.repository.find_rules_for(value):
                if rule.is_adjustment:
                    continue
                message = self._check_rule(rule, codes)
                if message is not None:
                    result.add(RuleViolation(
                        option_code=option.code,
                        rule_type=rule.rule_type,
                        message=rule.error_message or message,
                        rule_id=rule.id,
                    ))

        if not result.ok:
            logger.info(
                f"Selection {codes} for product {product.sku} failed with "
                f"{len(result.violations)} violation(s)"
            )
        return result

    def _check_rule(self, rule: ConfigurationRule, codes: Dict[str, str]) -> Optional[str]:
        """Return a generic failure message, or None when the rule passes."""
        target_option = rule.target_option_code
        target_value = rule.target_value_code

        if rule.rule_type == RuleType.DEPENDENCY.value:
            if not target_option or not target_value:
                return "Dependency rule is missing its target"
            if codes.get(target_option) != target_value:
                return f"This choice requires '{target_option}' to be '{target_value}'"
            return None

        if rule.rule_type == RuleType.EXCLUSION.value:
            if not target_option or not target_value:
                return "Exclusion rule is missing its target"
            if codes.get(target_option) == target_value:
                return f"This choice cannot be combined with '{target_option}' = '{target_value}'"
            return None

        if rule.rule_type == RuleType.REQUIREMENT.value:
            if not target_option:
                return "Requirement rule is missing its target"
            if target_option not in codes:
                return f"This choice requires a value for '{target_option}'"
            return None

        if rule.rule_type in (RuleType.VALIDATION.value, RuleType.CUSTOM.value):
            predicate = self.evaluators.get(rule.custom_validation or "")
            if predicate is None:
                logger.warning(f"No evaluator registered for custom validation '{rule.custom_validation}'")
                return "This selection could not be validated"
            if not predicate(rule, dict(codes)):
                return "This selection is not valid"
            return None

        logger.warning(f"Unknown configuration rule type '{rule.rule_type}' on rule {rule.id}")
        return f"Unsupported rule type '{rule.rule_type}'"

    # ==================== PRICE / WEIGHT ====================

    async def compute_adjusted_price_and_weight(
        self,
        product: Product,
        selection: Mapping[str, str],
        at: Optional[datetime] = None,
    ) -> AdjustedPriceWeight:
        """
        Price and weight of a configured product.

        Per-value adjustments are applied first: fixed amounts are added
        as-is, percentages are taken from the base price (never from the
        running total). Triggered price/weight adjustment rules are added
        afterwards. Prices stay integers in minor units.
        """
        resolved = await self.resolve_selection(product, selection)
        codes = resolved.codes

        base_price = product.current_price(at)
        base_weight = product.weight or 0.0
        price = base_price
        weight = base_weight

        for value in resolved.chosen.values():
            price += value.calculate_price_adjustment(base_price)
            if value.weight_adjustment is not None:
                weight += value.weight_adjustment

        for value in resolved.chosen.values():
            for rule in await self.repository.find_rules_for(value):
                if not rule.is_adjustment or not _target_matches(rule, codes):
                    continue
                if rule.rule_type == RuleType.PRICE_ADJUSTMENT.value and rule.price_adjustment is not None:
                    price += rule.price_adjustment
                elif rule.rule_type == RuleType.WEIGHT_ADJUSTMENT.value and rule.weight_adjustment is not None:
                    weight += rule.weight_adjustment

        currency = product.pricing.currency or settings.DEFAULT_CURRENCY
        return AdjustedPriceWeight(
            base_price=base_price,
            price=price,
            base_weight=base_weight,
            weight=weight,
            currency=currency,
            display_price=format_minor_units(price, currency),
        )

    # ==================== VARIATIONS ====================

    async def resolve_variation(self, product: Product, selection: Mapping[str, str]) -> ProductVariation:
        """
        Find the active variation whose option values equal the selection exactly.

        Raises:
            ConfigurationError: the product is not configurable or the selection is empty
            VariationNotFoundError: no variation embodies this combination
            AmbiguousVariationError: more than one variation does
        """
        if not product.is_configurable:
            raise ConfigurationError(f"Product {product.sku} is not configurable")

        resolved = await self.resolve_selection(product, selection)
        wanted = resolved.value_ids
        if not wanted:
            raise ConfigurationError("Cannot resolve a variation from an empty selection")

        variations = await self.repository.find_variations_for(product, active_only=True)
        value_sets = await self.repository.find_variation_value_sets(product)
        matches = [v for v in variations if value_sets.get(v.id, set()) == wanted]

        if not matches:
            raise VariationNotFoundError(
                f"No variation of {product.sku} matches {resolved.codes}"
            )
        if len(matches) > 1:
            skus = ", ".join(v.sku for v in matches)
            logger.error(f"Ambiguous variations for {product.sku} {resolved.codes}: {skus}")
            raise AmbiguousVariationError(
                f"Selection {resolved.codes} matches {len(matches)} variations of {product.sku}: {skus}",
                matches,
            )
        return matches[0]


# ==================== HELPER FUNCTIONS ====================

def _target_matches(rule: ConfigurationRule, codes: Dict[str, str]) -> bool:
    """Adjustment rules with a target only apply when the target is selected as given."""
    if not rule.target_option_code:
        return True
    chosen = codes.get(rule.target_option_code)
    if chosen is None:
        return False
    return rule.target_value_code is None or chosen == rule.target_value_code
