"""Tipos del catálogo usados por el motor de precios.

Los grupos de opciones son una variante cerrada: cada clase lleva solo los
campos que tienen sentido para su tipo y se valida al construirse.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

Money = int

KIND_SINGLE_CHOICE = "single-choice"
KIND_MULTI_CHOICE = "multi-choice"
KIND_ADD_ON = "add-on"
KIND_REMOVAL = "removal"

OPTION_GROUP_KINDS = (KIND_SINGLE_CHOICE, KIND_MULTI_CHOICE, KIND_ADD_ON, KIND_REMOVAL)


@dataclass(frozen=True)
class OptionValue:
    label: str
    price_delta: Money = 0

    def __post_init__(self) -> None:
        if not self.label or not self.label.strip():
            raise ValueError("OptionValue.label vacío")
        if not isinstance(self.price_delta, int) or isinstance(self.price_delta, bool):
            raise ValueError("OptionValue.price_delta debe ser entero")


@dataclass(frozen=True)
class _ChoiceGroup:
    id: str
    name: str
    values: tuple[OptionValue, ...]
    required: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))
        if not self.values:
            raise ValueError(f"El grupo {self.name!r} necesita al menos un valor")
        labels = [value.label for value in self.values]
        if len(set(labels)) != len(labels):
            raise ValueError(f"El grupo {self.name!r} tiene valores repetidos")

    def find_value(self, label: str) -> Optional[OptionValue]:
        for value in self.values:
            if value.label == label:
                return value
        return None


@dataclass(frozen=True)
class SingleChoiceGroup(_ChoiceGroup):
    kind = KIND_SINGLE_CHOICE


@dataclass(frozen=True)
class MultiChoiceGroup(_ChoiceGroup):
    kind = KIND_MULTI_CHOICE


@dataclass(frozen=True)
class AddOnGroup:
    id: str
    name: str
    price_delta: Money = 0
    required: bool = False

    kind = KIND_ADD_ON

    def __post_init__(self) -> None:
        if not isinstance(self.price_delta, int) or isinstance(self.price_delta, bool):
            raise ValueError("AddOnGroup.price_delta debe ser entero")


@dataclass(frozen=True)
class RemovalGroup:
    id: str
    name: str
    required: bool = False

    kind = KIND_REMOVAL
    price_delta = 0


OptionGroup = Union[SingleChoiceGroup, MultiChoiceGroup, AddOnGroup, RemovalGroup]


def is_choice_group(group: OptionGroup) -> bool:
    return isinstance(group, _ChoiceGroup)


def build_option_group(
    *,
    id: str,
    name: str,
    kind: str,
    required: bool = False,
    price_delta: Money = 0,
    values: list[OptionValue] | tuple[OptionValue, ...] = (),
) -> OptionGroup:
    if kind == KIND_SINGLE_CHOICE:
        return SingleChoiceGroup(id=id, name=name, values=tuple(values), required=required)
    if kind == KIND_MULTI_CHOICE:
        return MultiChoiceGroup(id=id, name=name, values=tuple(values), required=required)
    if kind == KIND_ADD_ON:
        return AddOnGroup(id=id, name=name, price_delta=price_delta, required=required)
    if kind == KIND_REMOVAL:
        if price_delta:
            raise ValueError(f"El grupo de quitar {name!r} no puede cambiar el precio")
        return RemovalGroup(id=id, name=name, required=required)
    raise ValueError(f"Tipo de grupo inválido: {kind}")


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: Money
    description: str = ""
    category: Optional[str] = None
    is_available: bool = True
    stock: Optional[int] = None
    image_url: Optional[str] = None
    option_groups: tuple[OptionGroup, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "option_groups", tuple(self.option_groups))
        if not isinstance(self.price, int) or isinstance(self.price, bool) or self.price < 0:
            raise ValueError(f"Precio inválido para {self.name!r}: {self.price!r}")

    def find_group(self, group_id: str) -> Optional[OptionGroup]:
        for group in self.option_groups:
            if group.id == group_id:
                return group
        return None


@dataclass(frozen=True)
class SelectedOption:
    """Opción elegida con el delta de precio vigente al momento de elegirla."""

    group_id: str
    price_delta: Money
    display_name: str
    value: Optional[str] = None

    def sort_key(self) -> tuple[str, str]:
        return (self.group_id, self.value or "")


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    display_order: int = 0
    is_active: bool = True


@dataclass(frozen=True)
class RestaurantSettings:
    name: str = ""
    phone: str = ""
    whatsapp_number: str = ""
    address: str = ""
    delivery_cost: Money = 0
    is_delivery_free: bool = False
    is_open: bool = True
    opening_hours: dict = field(default_factory=dict)
    social_media: dict = field(default_factory=dict)

    @property
    def contact_number(self) -> str:
        return self.whatsapp_number or self.phone
