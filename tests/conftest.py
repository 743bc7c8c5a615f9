import itertools
from datetime import date

import pytest

from opscore.db import connect, ensure_schema
from opscore.models import Dietary, Ingredient, MenuItem, Sku, SkuCategory, Transaction, TransactionType

D1 = date(2026, 3, 10)

_ids = itertools.count(1)


def make_txn(tx_type, sku_id, qty, *, branch_id="B1", on=D1, ts=None):
    n = next(_ids)
    return Transaction(
        id=f"t{n}",
        date=on,
        branch_id=branch_id,
        sku_id=sku_id,
        type=TransactionType(tx_type),
        quantity_pieces=qty,
        timestamp=ts if ts is not None else n,
    )


@pytest.fixture
def skus():
    return [
        Sku("sku-1", "Veg Steam", SkuCategory.STEAM, Dietary.VEG, pieces_per_packet=50, order=1),
        Sku("sku-2", "Paneer Kurkure", SkuCategory.KURKURE, Dietary.VEG, pieces_per_packet=36, order=2),
        Sku("sku-3", "Chicken Roll", SkuCategory.ROLL, Dietary.NON_VEG, pieces_per_packet=20, order=3),
        Sku("sku-4", "Wheat Momo", SkuCategory.WHEAT, Dietary.VEG, pieces_per_packet=40, order=4),
        Sku("sku-5", "Chutney", SkuCategory.CONSUMABLES, Dietary.NA, pieces_per_packet=1, order=5),
    ]


@pytest.fixture
def menu():
    return [
        MenuItem("m-steam", "Veg Steam Plate", (Ingredient("sku-1", 8),)),
        MenuItem("m-kurkure", "Paneer Kurkure Plate", (Ingredient("sku-2", 6),), (Ingredient("sku-2", 4),)),
        MenuItem("m-wheat", "Wheat Momo Plate", (Ingredient("sku-4", 7), Ingredient("sku-5", 1))),
    ]


@pytest.fixture
def conn(tmp_path):
    c = connect(tmp_path / "ops.db")
    ensure_schema(c)
    yield c
    c.close()
