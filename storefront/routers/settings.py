from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.errors import InvalidField
from storefront.deps import get_catalog_lookup, require_admin_token
from storefront.domain.catalog import RestaurantSettings
from storefront.domain.notification import normalize_phone
from storefront.domain.schedule import is_restaurant_open, next_opening_time, validate_opening_hours
from storefront.services.catalog import SqlCatalogLookup, settings_to_domain, update_restaurant_settings

logger = logging.getLogger(__name__)
SETTINGS_PREFIX = "[SETTINGS]"

router = APIRouter(prefix="/api", tags=["settings"])


class SettingsIn(BaseModel):
    name: str = Field(..., max_length=200)
    phone: str = Field(..., max_length=30)
    whatsapp_number: str = Field(default="", max_length=30)
    address: str = Field(default="", max_length=500)
    delivery_cost: int = Field(default=0, ge=0)
    is_delivery_free: bool = False
    is_open: bool = True
    opening_hours: dict[str, Any] = Field(default_factory=dict)
    social_media: dict[str, Optional[str]] = Field(default_factory=dict)


def settings_payload(settings: RestaurantSettings, now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now()
    open_by_schedule = is_restaurant_open(settings.opening_hours, now) if settings.opening_hours else True
    is_open_now = settings.is_open and open_by_schedule
    return {
        "name": settings.name,
        "phone": settings.phone,
        "whatsapp_number": settings.whatsapp_number,
        "address": settings.address,
        "delivery_cost": settings.delivery_cost,
        "is_delivery_free": settings.is_delivery_free,
        "is_open": settings.is_open,
        "opening_hours": settings.opening_hours,
        "social_media": settings.social_media,
        "is_open_now": is_open_now,
        "next_opening": None if is_open_now else next_opening_time(settings.opening_hours, now),
    }


@router.get("/settings")
def get_settings(catalog: SqlCatalogLookup = Depends(get_catalog_lookup)):
    return settings_payload(catalog.get_restaurant_settings())


@router.put("/settings", dependencies=[Depends(require_admin_token)])
def put_settings(body: SettingsIn, db: Session = Depends(get_db)):
    name = body.name.strip()
    if not name:
        raise InvalidField("El nombre del local es obligatorio", field="name")

    phone = normalize_phone(body.phone)
    if phone is None:
        raise InvalidField("Teléfono inválido", field="phone")

    whatsapp_number = ""
    if body.whatsapp_number.strip():
        whatsapp_number = normalize_phone(body.whatsapp_number)
        if whatsapp_number is None:
            raise InvalidField("Número de WhatsApp inválido", field="whatsapp_number")

    if body.opening_hours:
        error = validate_opening_hours(body.opening_hours)
        if error:
            raise InvalidField(error, field="opening_hours")

    row = update_restaurant_settings(
        db,
        data={
            "name": name,
            "phone": phone,
            "whatsapp_number": whatsapp_number,
            "address": body.address.strip(),
            "delivery_cost": body.delivery_cost,
            "is_delivery_free": body.is_delivery_free,
            "is_open": body.is_open,
            "opening_hours": body.opening_hours,
            "social_media": {key: value for key, value in body.social_media.items() if value},
        },
    )
    logger.info("%s updated name=%s", SETTINGS_PREFIX, name)
    return settings_payload(settings_to_domain(row))
