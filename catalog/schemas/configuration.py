"""Configuration payloads."""
from typing import Optional, List
import uuid

from pydantic import BaseModel


class RuleViolationResponse(BaseModel):
    rule_id: Optional[uuid.UUID] = None
    rule_type: str
    option_code: str
    message: str


class ValidationResponse(BaseModel):
    ok: bool
    violations: List[RuleViolationResponse] = []


class AdjustedPriceWeight(BaseModel):
    """Configured price (minor units) and weight of a selection."""
    base_price: int
    price: int
    base_weight: float = 0.0
    weight: float = 0.0
    currency: str
    display_price: str
