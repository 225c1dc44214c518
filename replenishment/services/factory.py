"""Wire repository, cache and services from settings."""

from __future__ import annotations

from dataclasses import dataclass

from replenishment.cache.coverage_cache import CoverageCache, build_coverage_cache
from replenishment.core.config import Settings, get_settings
from replenishment.db.repository import SqlHistoryRepository
from replenishment.domain.coverage.config import StockCoverageConfig
from replenishment.domain.purchase.config import PurchaseRequirementConfig
from replenishment.services.purchase_requirement import PurchaseRequirementService
from replenishment.services.stock_coverage import StockCoverageService


@dataclass
class Services:
    repository: SqlHistoryRepository
    cache: CoverageCache
    coverage: StockCoverageService
    purchase: PurchaseRequirementService


def build_services(settings: Settings | None = None) -> Services:
    """Build the service graph; tables are created if missing."""
    from replenishment.db.session import SessionLocal, init_db

    settings = settings or get_settings()
    init_db()

    repository = SqlHistoryRepository(SessionLocal)
    cache = build_coverage_cache(settings)
    coverage = StockCoverageService(
        repository, cache, config=StockCoverageConfig.from_settings(settings)
    )
    purchase = PurchaseRequirementService(
        repository, coverage, config=PurchaseRequirementConfig.from_settings(settings)
    )
    return Services(repository=repository, cache=cache, coverage=coverage, purchase=purchase)
