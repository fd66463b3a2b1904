from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from storefront.domain import catalog as domain
from storefront.domain.catalog import OptionValue, build_option_group
from storefront.models.category import Category
from storefront.models.product import OptionGroup, OptionValue as OptionValueRow, Product
from storefront.models.restaurant_settings import RestaurantSettings

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1


def product_to_domain(product: Product) -> domain.Product:
    groups = []
    for group in product.option_groups:
        groups.append(
            build_option_group(
                id=group.id,
                name=group.name,
                kind=group.kind,
                required=bool(group.required),
                price_delta=int(group.price_delta or 0),
                values=[
                    OptionValue(label=value.label, price_delta=int(value.price_delta or 0))
                    for value in group.values
                ],
            )
        )
    return domain.Product(
        id=product.id,
        name=product.name,
        description=product.description or "",
        price=int(product.price),
        category=product.category_id,
        is_available=bool(product.is_available),
        stock=product.stock,
        image_url=product.image_url,
        option_groups=tuple(groups),
    )


def settings_to_domain(row: Optional[RestaurantSettings]) -> domain.RestaurantSettings:
    if row is None:
        return domain.RestaurantSettings()
    return domain.RestaurantSettings(
        name=row.name or "",
        phone=row.phone or "",
        whatsapp_number=row.whatsapp_number or "",
        address=row.address or "",
        delivery_cost=int(row.delivery_cost or 0),
        is_delivery_free=bool(row.is_delivery_free),
        is_open=bool(row.is_open),
        opening_hours=dict(row.opening_hours or {}),
        social_media=dict(row.social_media or {}),
    )


class SqlCatalogLookup:
    """Lectura del catálogo y de la configuración del local."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _products_query(self):
        return self.db.query(Product).options(
            selectinload(Product.option_groups).selectinload(OptionGroup.values)
        )

    def list_products(self, category_id: str | None = None, only_available: bool = True) -> list[domain.Product]:
        query = self._products_query()
        if only_available:
            query = query.filter(Product.is_available.is_(True))
        if category_id:
            query = query.filter(Product.category_id == category_id)
        return [product_to_domain(row) for row in query.order_by(Product.name.asc()).all()]

    def get_available_products(self, category_id: str | None = None) -> list[domain.Product]:
        return self.list_products(category_id=category_id, only_available=True)

    def get_product_by_id(self, product_id: str) -> Optional[domain.Product]:
        row = self._products_query().filter(Product.id == product_id).first()
        if row is None:
            return None
        return product_to_domain(row)

    def get_active_categories(self) -> list[domain.Category]:
        rows = (
            self.db.query(Category)
            .filter(Category.is_active.is_(True))
            .order_by(Category.display_order.asc(), Category.name.asc())
            .all()
        )
        return [
            domain.Category(
                id=row.id,
                name=row.name,
                display_order=int(row.display_order or 0),
                is_active=bool(row.is_active),
            )
            for row in rows
        ]

    def get_restaurant_settings(self) -> domain.RestaurantSettings:
        row = self.db.query(RestaurantSettings).filter(RestaurantSettings.id == SETTINGS_ROW_ID).first()
        return settings_to_domain(row)


def create_category(db: Session, *, name: str, display_order: int = 0) -> Category:
    category = Category(name=name.strip(), display_order=display_order, is_active=True)
    db.add(category)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(category)
    return category


def _normalized_groups(groups_data: list[dict]) -> list[dict]:
    """Recorta nombres y etiquetas una sola vez; lo mismo se valida y se guarda."""
    return [
        {
            "name": (group.get("name") or "").strip(),
            "kind": group["kind"],
            "required": bool(group.get("required", False)),
            "price_delta": int(group.get("price_delta", 0) or 0),
            "values": [
                {"label": (value.get("label") or "").strip(), "price_delta": int(value.get("price_delta", 0) or 0)}
                for value in group.get("values") or []
            ],
        }
        for group in groups_data
    ]


def create_product(db: Session, *, data: dict) -> Product:
    """Crea el producto con sus grupos; los grupos se validan como variantes cerradas."""
    groups_data = _normalized_groups(data.get("option_groups") or [])
    # valida antes de tocar la base (lanza ValueError)
    for group in groups_data:
        build_option_group(
            id="new",
            name=group["name"],
            kind=group["kind"],
            required=group["required"],
            price_delta=group["price_delta"],
            values=[OptionValue(label=value["label"], price_delta=value["price_delta"]) for value in group["values"]],
        )

    product = Product(
        name=data["name"].strip(),
        description=(data.get("description") or "").strip(),
        price=data["price"],
        category_id=data.get("category_id"),
        image_url=(data.get("image_url") or "").strip() or None,
        stock=data.get("stock"),
        is_available=data.get("is_available", True),
    )
    for position, group in enumerate(groups_data):
        group_row = OptionGroup(
            name=group["name"],
            kind=group["kind"],
            required=group["required"],
            price_delta=group["price_delta"],
            position=position,
        )
        for value_position, value in enumerate(group["values"]):
            group_row.values.append(
                OptionValueRow(label=value["label"], price_delta=value["price_delta"], position=value_position)
            )
        product.option_groups.append(group_row)

    db.add(product)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(product)
    logger.info("product created id=%s groups=%s", product.id, len(groups_data))
    return product


def update_restaurant_settings(db: Session, *, data: dict) -> RestaurantSettings:
    row = db.query(RestaurantSettings).filter(RestaurantSettings.id == SETTINGS_ROW_ID).first()
    if row is None:
        row = RestaurantSettings(id=SETTINGS_ROW_ID)
        db.add(row)
    for key, value in data.items():
        setattr(row, key, value)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(row)
    logger.info("restaurant settings updated fields=%s", sorted(data))
    return row
