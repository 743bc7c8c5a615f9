from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Mapping, Optional, Union

from opscore.errors import ValidationError
from opscore.utils import FRIDGE, parse_local_date


class TransactionType(str, Enum):
    CHECK_OUT = "CHECK_OUT"  # fridge -> branch
    CHECK_IN = "CHECK_IN"  # branch -> fridge (returns)
    WASTE = "WASTE"
    RESTOCK = "RESTOCK"  # supplier -> fridge
    ADJUSTMENT = "ADJUSTMENT"  # stocktake correction, signed


class SkuCategory(str, Enum):
    STEAM = "Steam"
    KURKURE = "Kurkure"
    WHEAT = "Wheat"
    ROLL = "Roll"
    CONSUMABLES = "Consumables"
    FRY = "Fry"
    MOMOS = "Momos"


class Dietary(str, Enum):
    VEG = "Veg"
    NON_VEG = "Non-Veg"
    NA = "N/A"


class Platform(str, Enum):
    POS = "POS"
    ZOMATO = "ZOMATO"
    SWIGGY = "SWIGGY"


class Variant(str, Enum):
    FULL = "FULL"
    HALF = "HALF"


class OrderStatus(str, Enum):
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


def _get(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    # Rows arrive either camelCase (API) or snake_case (sqlite / csv).
    for k in keys:
        if k in raw and raw[k] is not None:
            return raw[k]
    return default


@dataclass(frozen=True)
class Sku:
    id: str
    name: str
    category: SkuCategory
    dietary: Dietary = Dietary.NA
    pieces_per_packet: int = 1
    order: int = 0
    cost_price: Optional[float] = None

    @property
    def packet_size(self) -> int:
        return self.pieces_per_packet if self.pieces_per_packet > 0 else 1

    @classmethod
    def from_record(cls, raw: Mapping[str, Any]) -> "Sku":
        cost = _get(raw, "costPrice", "cost_price")
        return cls(
            id=str(raw["id"]),
            name=str(_get(raw, "name", default="")),
            category=SkuCategory(_get(raw, "category")),
            dietary=Dietary(_get(raw, "dietary", default=Dietary.NA.value)),
            pieces_per_packet=int(_get(raw, "piecesPerPacket", "pieces_per_packet", default=1)),
            order=int(_get(raw, "order", "sort_order", default=0)),
            cost_price=float(cost) if cost is not None else None,
        )


@dataclass(frozen=True)
class Transaction:
    id: str
    date: date
    branch_id: str
    sku_id: str
    type: TransactionType
    quantity_pieces: float
    timestamp: int = 0  # epoch millis
    batch_id: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None

    @property
    def is_fridge(self) -> bool:
        return self.branch_id == FRIDGE

    @classmethod
    def from_record(cls, raw: Mapping[str, Any]) -> "Transaction":
        branch_id = _get(raw, "branchId", "branch_id")
        if not branch_id:
            raise ValidationError.single(f"Transaction {raw['id']}: branch is required.", field="branch_id")
        return cls(
            id=str(raw["id"]),
            date=parse_local_date(raw["date"]),
            branch_id=str(branch_id),
            sku_id=str(_get(raw, "skuId", "sku_id")),
            type=TransactionType(_get(raw, "type")),
            quantity_pieces=float(_get(raw, "quantityPieces", "quantity_pieces", default=0)),
            timestamp=int(_get(raw, "timestamp", default=0)),
            batch_id=_get(raw, "batchId", "batch_id"),
            user_id=_get(raw, "userId", "user_id"),
            user_name=_get(raw, "userName", "user_name"),
        )


@dataclass(frozen=True)
class Ingredient:
    sku_id: str
    quantity: float

    @classmethod
    def from_record(cls, raw: Mapping[str, Any]) -> "Ingredient":
        return cls(sku_id=str(_get(raw, "skuId", "sku_id")), quantity=float(_get(raw, "quantity", default=0)))


@dataclass(frozen=True)
class MenuItem:
    id: str
    name: str = ""
    ingredients: tuple[Ingredient, ...] = ()
    half_ingredients: Optional[tuple[Ingredient, ...]] = None

    def recipe_for(self, variant: Variant) -> tuple[Ingredient, ...]:
        """
        Ingredient list for one plate of the given variant.
        HALF uses the explicit half recipe when it is non-empty, otherwise each
        full ingredient scaled by 0.5 (unrounded).
        """
        if variant != Variant.HALF:
            return self.ingredients
        if self.half_ingredients:
            return self.half_ingredients
        return tuple(Ingredient(sku_id=i.sku_id, quantity=i.quantity * 0.5) for i in self.ingredients)

    @classmethod
    def from_record(cls, raw: Mapping[str, Any]) -> "MenuItem":
        half = _get(raw, "halfIngredients", "half_ingredients")
        return cls(
            id=str(raw["id"]),
            name=str(_get(raw, "name", default="")),
            ingredients=tuple(Ingredient.from_record(i) for i in (_get(raw, "ingredients", default=[]) or [])),
            half_ingredients=tuple(Ingredient.from_record(i) for i in half) if half is not None else None,
        )


# -------------------------
# Consumption overrides (resolved once at ingestion)
# -------------------------

@dataclass(frozen=True)
class SnapshotArray:
    entries: tuple[Ingredient, ...]
    kind: str = "snapshot-array"


@dataclass(frozen=True)
class SnapshotSingle:
    entry: Ingredient
    kind: str = "snapshot-single"


@dataclass(frozen=True)
class LegacyPlate:
    sku_id: str
    per_unit_qty: float
    kind: str = "legacy-plate"


@dataclass(frozen=True)
class NoOverride:
    kind: str = "none"


ConsumptionOverride = Union[SnapshotArray, SnapshotSingle, LegacyPlate, NoOverride]


def resolve_override(raw_item: Mapping[str, Any]) -> ConsumptionOverride:
    consumed = raw_item.get("consumed")
    if isinstance(consumed, (list, tuple)):
        if consumed:
            return SnapshotArray(entries=tuple(Ingredient.from_record(c) for c in consumed))
    elif isinstance(consumed, Mapping) and _get(consumed, "skuId", "sku_id") is not None:
        return SnapshotSingle(entry=Ingredient.from_record(consumed))

    plate = raw_item.get("plate")
    if isinstance(plate, Mapping) and _get(plate, "skuId", "sku_id") is not None:
        return LegacyPlate(
            sku_id=str(_get(plate, "skuId", "sku_id")),
            per_unit_qty=float(_get(plate, "quantity", default=0)),
        )
    return NoOverride()


@dataclass(frozen=True)
class OrderItem:
    menu_item_id: str
    quantity: float
    name: str = ""
    variant: Variant = Variant.FULL
    override: ConsumptionOverride = field(default_factory=NoOverride)

    @classmethod
    def from_record(cls, raw: Mapping[str, Any]) -> "OrderItem":
        return cls(
            menu_item_id=str(_get(raw, "menuItemId", "menu_item_id", default="")),
            quantity=float(_get(raw, "quantity", default=0)),
            name=str(_get(raw, "name", default="")),
            variant=Variant(_get(raw, "variant", default=Variant.FULL.value)),
            override=resolve_override(raw),
        )


@dataclass(frozen=True)
class Order:
    id: str
    branch_id: str
    date: date
    platform: Platform = Platform.POS
    items: tuple[OrderItem, ...] = ()
    total_amount: float = 0.0
    timestamp: int = 0
    status: OrderStatus = OrderStatus.COMPLETED
    custom_sku_items: tuple[Ingredient, ...] = ()

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderStatus.CANCELLED

    @classmethod
    def from_record(cls, raw: Mapping[str, Any]) -> "Order":
        return cls(
            id=str(raw["id"]),
            branch_id=str(_get(raw, "branchId", "branch_id")),
            date=parse_local_date(raw["date"]),
            platform=Platform(_get(raw, "platform", default=Platform.POS.value)),
            items=tuple(OrderItem.from_record(i) for i in (_get(raw, "items", default=[]) or [])),
            total_amount=float(_get(raw, "totalAmount", "total_amount", default=0)),
            timestamp=int(_get(raw, "timestamp", default=0)),
            status=OrderStatus(_get(raw, "status", default=OrderStatus.COMPLETED.value)),
            custom_sku_items=tuple(
                Ingredient.from_record(c) for c in (_get(raw, "customSkuItems", "custom_sku_items", default=[]) or [])
            ),
        )


@dataclass(frozen=True)
class SalesRecord:
    id: str
    date: date
    branch_id: str
    platform: Platform
    sku_id: str
    quantity_sold: float
    timestamp: int = 0

    @classmethod
    def from_record(cls, raw: Mapping[str, Any]) -> "SalesRecord":
        return cls(
            id=str(raw["id"]),
            date=parse_local_date(raw["date"]),
            branch_id=str(_get(raw, "branchId", "branch_id")),
            platform=Platform(_get(raw, "platform")),
            sku_id=str(_get(raw, "skuId", "sku_id")),
            quantity_sold=float(_get(raw, "quantitySold", "quantity_sold", default=0)),
            timestamp=int(_get(raw, "timestamp", default=0)),
        )


@dataclass(frozen=True)
class StorageUnit:
    id: str
    name: str
    capacity_litres: float
    type: str = "DEEP_FREEZER"
    is_active: bool = True
