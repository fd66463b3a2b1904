from __future__ import annotations

import hmac
import logging

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from storefront.core import config
from storefront.core.database import get_db
from storefront.core.rate_limiter import RateLimiterService, get_order_rate_limiter
from storefront.services.catalog import SqlCatalogLookup
from storefront.services.order_repository import SqlOrderRepository
from storefront.services.order_validator import OrderValidator

logger = logging.getLogger(__name__)


def require_admin_token(x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")) -> None:
    configured = (config.ADMIN_API_TOKEN or "").strip()
    incoming = (x_admin_token or "").strip()
    if not configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="El panel requiere ADMIN_API_TOKEN configurado",
        )
    if not hmac.compare_digest(incoming, configured):
        logger.warning("[ADMIN] invalid admin token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token inválido")


def get_catalog_lookup(db: Session = Depends(get_db)) -> SqlCatalogLookup:
    return SqlCatalogLookup(db)


def get_order_repository(db: Session = Depends(get_db)) -> SqlOrderRepository:
    return SqlOrderRepository(db)


def get_order_validator(
    catalog: SqlCatalogLookup = Depends(get_catalog_lookup),
    repository: SqlOrderRepository = Depends(get_order_repository),
    rate_limiter: RateLimiterService = Depends(get_order_rate_limiter),
) -> OrderValidator:
    return OrderValidator(
        product_lookup=catalog,
        settings_lookup=catalog,
        repository=repository,
        rate_limiter=rate_limiter,
    )
