from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from storefront.domain.catalog import OPTION_GROUP_KINDS


class OptionValueIn(BaseModel):
    label: str = Field(..., min_length=1, max_length=120)
    price_delta: int = 0


class OptionGroupIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    kind: str
    required: bool = False
    price_delta: int = 0
    values: list[OptionValueIn] = Field(default_factory=list)

    @field_validator("kind")
    @classmethod
    def _known_kind(cls, value: str) -> str:
        if value not in OPTION_GROUP_KINDS:
            raise ValueError(f"tipo de grupo inválido: {value}")
        return value


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    price: int = Field(..., ge=0)
    category_id: Optional[str] = None
    image_url: Optional[str] = None
    is_available: bool = True
    stock: Optional[int] = Field(default=None, ge=0)
    option_groups: list[OptionGroupIn] = Field(default_factory=list)


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    display_order: int = 0


class OptionValueOut(BaseModel):
    label: str
    price_delta: int


class OptionGroupOut(BaseModel):
    id: str
    name: str
    kind: str
    required: bool
    price_delta: int
    values: list[OptionValueOut] = Field(default_factory=list)


class ProductOut(BaseModel):
    id: str
    name: str
    description: str
    price: int
    category_id: Optional[str] = None
    image_url: Optional[str] = None
    is_available: bool
    stock: Optional[int] = None
    option_groups: list[OptionGroupOut] = Field(default_factory=list)


class CategoryOut(BaseModel):
    id: str
    name: str
    display_order: int
    is_active: bool
