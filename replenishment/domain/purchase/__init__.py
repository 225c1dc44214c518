"""Purchase requirement (replenishment) calculation."""

from replenishment.domain.purchase.calculator import PurchaseRequirementCalculator
from replenishment.domain.purchase.config import (
    ProductFilters,
    PurchaseRequirementConfig,
    PurchaseScenario,
)
from replenishment.domain.purchase.types import (
    OpenPurchaseOrder,
    PurchaseBatchResult,
    PurchaseRequirementInput,
    PurchaseRequirementResult,
)

__all__ = [
    "OpenPurchaseOrder",
    "ProductFilters",
    "PurchaseBatchResult",
    "PurchaseRequirementCalculator",
    "PurchaseRequirementConfig",
    "PurchaseRequirementInput",
    "PurchaseRequirementResult",
    "PurchaseScenario",
]
