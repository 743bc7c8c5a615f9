import pytest
from conftest import D1

from opscore.errors import ValidationError
from opscore.models import (
    Ingredient,
    MenuItem,
    Platform,
    SalesRecord,
    Sku,
    SkuCategory,
    Transaction,
    TransactionType,
    Variant,
)
from opscore.utils import FRIDGE


# -------------------------
# Transactions
# -------------------------

def test_transaction_from_camel_case():
    t = Transaction.from_record(
        {
            "id": "t1",
            "date": "2026-03-10",
            "branchId": "B1",
            "skuId": "sku-1",
            "type": "WASTE",
            "quantityPieces": 4,
            "timestamp": 1773100800000,
            "batchId": "b1",
            "userName": "asha",
        }
    )
    assert (t.date, t.branch_id, t.sku_id, t.type, t.quantity_pieces) == (D1, "B1", "sku-1", TransactionType.WASTE, 4)
    assert (t.timestamp, t.batch_id, t.user_name) == (1773100800000, "b1", "asha")
    assert not t.is_fridge


def test_transaction_from_snake_case():
    t = Transaction.from_record(
        {"id": "t2", "date": "2026-03-10", "branch_id": FRIDGE, "sku_id": "sku-1", "type": "RESTOCK", "quantity_pieces": "50"}
    )
    assert t.is_fridge
    assert t.quantity_pieces == 50
    assert t.timestamp == 0


@pytest.mark.parametrize("branch", [None, ""])
def test_transaction_requires_branch(branch):
    raw = {"id": "t3", "date": "2026-03-10", "skuId": "sku-1", "type": "WASTE", "quantityPieces": 4}
    if branch is not None:
        raw["branchId"] = branch
    with pytest.raises(ValidationError, match="branch is required"):
        Transaction.from_record(raw)


# -------------------------
# Menu items
# -------------------------

def test_menu_item_from_record_with_explicit_half():
    m = MenuItem.from_record(
        {
            "id": "m1",
            "name": "Kurkure",
            "ingredients": [{"skuId": "sku-2", "quantity": 6}],
            "half_ingredients": [{"sku_id": "sku-2", "quantity": 4}],
        }
    )
    assert m.recipe_for(Variant.FULL) == (Ingredient("sku-2", 6),)
    assert m.recipe_for(Variant.HALF) == (Ingredient("sku-2", 4),)


def test_empty_half_ingredients_fall_back_to_scaling():
    m = MenuItem.from_record({"id": "m1", "ingredients": [{"skuId": "sku-1", "quantity": 7}], "halfIngredients": []})
    assert m.half_ingredients == ()
    assert m.recipe_for(Variant.HALF) == (Ingredient("sku-1", 3.5),)


# -------------------------
# Reference records
# -------------------------

def test_sales_record_from_either_case():
    camel = SalesRecord.from_record(
        {"id": "r1", "date": "2026-03-10", "branchId": "B1", "platform": "SWIGGY", "skuId": "sku-1", "quantitySold": 8}
    )
    snake = SalesRecord.from_record(
        {"id": "r1", "date": "2026-03-10", "branch_id": "B1", "platform": "SWIGGY", "sku_id": "sku-1", "quantity_sold": 8}
    )
    assert camel == snake
    assert camel.platform == Platform.SWIGGY


def test_sku_packet_size_never_zero():
    s = Sku.from_record({"id": "s", "name": "Odd", "category": "Fry", "piecesPerPacket": 0, "costPrice": "12.5"})
    assert s.category == SkuCategory.FRY
    assert s.packet_size == 1
    assert s.cost_price == 12.5
