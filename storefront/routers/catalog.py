from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from storefront.core.database import get_db
from storefront.core.errors import InvalidField
from storefront.deps import get_catalog_lookup, require_admin_token
from storefront.domain import catalog as domain
from storefront.domain.catalog import is_choice_group
from storefront.models.category import Category
from storefront.schemas.catalog import CategoryIn, CategoryOut, OptionGroupOut, OptionValueOut, ProductIn, ProductOut
from storefront.services.catalog import SqlCatalogLookup, create_category, create_product, product_to_domain

logger = logging.getLogger(__name__)
CATALOG_PREFIX = "[CATALOG]"

router = APIRouter(prefix="/api", tags=["catalog"])


def _product_out(product: domain.Product) -> ProductOut:
    return ProductOut(
        id=product.id,
        name=product.name,
        description=product.description,
        price=product.price,
        category_id=product.category,
        image_url=product.image_url,
        is_available=product.is_available,
        stock=product.stock,
        option_groups=[
            OptionGroupOut(
                id=group.id,
                name=group.name,
                kind=group.kind,
                required=group.required,
                price_delta=group.price_delta,
                values=[
                    OptionValueOut(label=value.label, price_delta=value.price_delta)
                    for value in group.values
                ]
                if is_choice_group(group)
                else [],
            )
            for group in product.option_groups
        ],
    )


def _category_out(category) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        name=category.name,
        display_order=int(category.display_order or 0),
        is_active=bool(category.is_active),
    )


@router.get("/products", response_model=list[ProductOut])
def list_products(
    category: Optional[str] = Query(None),
    available: bool = Query(True),
    catalog: SqlCatalogLookup = Depends(get_catalog_lookup),
):
    return [_product_out(product) for product in catalog.list_products(category_id=category, only_available=available)]


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: str, catalog: SqlCatalogLookup = Depends(get_catalog_lookup)):
    product = catalog.get_product_by_id(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    return _product_out(product)


@router.get("/categories", response_model=list[CategoryOut])
def list_categories(catalog: SqlCatalogLookup = Depends(get_catalog_lookup)):
    return [_category_out(category) for category in catalog.get_active_categories()]


@router.post(
    "/products",
    response_model=ProductOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_token)],
)
def add_product(body: ProductIn, db: Session = Depends(get_db)):
    if body.category_id and db.query(Category.id).filter(Category.id == body.category_id).first() is None:
        raise InvalidField("Categoría inexistente", field="category_id")
    try:
        product = create_product(db, data=body.model_dump())
    except ValueError as exc:
        logger.warning("%s invalid product payload error=%s", CATALOG_PREFIX, exc)
        raise InvalidField(str(exc), field="option_groups") from exc
    return _product_out(product_to_domain(product))


@router.post(
    "/categories",
    response_model=CategoryOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_token)],
)
def add_category(body: CategoryIn, db: Session = Depends(get_db)):
    name = body.name.strip()
    if not name:
        raise InvalidField("El nombre es obligatorio", field="name")
    return _category_out(create_category(db, name=name, display_order=body.display_order))
