from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Optional

from opscore.db import ensure_schema
from opscore.models import Dietary, Ingredient, MenuItem, Sku, SkuCategory
from opscore.services.ledger import append_transactions, check_in, check_out, record_waste, restock, upsert_skus
from opscore.utils import FRIDGE, local_today

DEFAULT_BRANCHES = ["branch-main", "branch-b"]

DEFAULT_SKUS = [
    Sku("veg-steam", "Veg Steam Momo", SkuCategory.STEAM, Dietary.VEG, 50, 1, 180.0),
    Sku("chk-steam", "Chicken Steam Momo", SkuCategory.STEAM, Dietary.NON_VEG, 50, 2, 220.0),
    Sku("veg-kurkure", "Veg Kurkure Momo", SkuCategory.KURKURE, Dietary.VEG, 36, 3, 200.0),
    Sku("chk-roll", "Chicken Roll", SkuCategory.ROLL, Dietary.NON_VEG, 20, 4, 260.0),
    Sku("chutney", "Red Chutney", SkuCategory.CONSUMABLES, Dietary.NA, 1, 9, 60.0),
]

DEFAULT_MENU = [
    MenuItem("m-veg-steam", "Veg Steam Momo", (Ingredient("veg-steam", 8),)),
    MenuItem("m-chk-steam", "Chicken Steam Momo", (Ingredient("chk-steam", 8),)),
    MenuItem("m-veg-kurkure", "Veg Kurkure Momo", (Ingredient("veg-kurkure", 6),), (Ingredient("veg-kurkure", 3),)),
    MenuItem("m-chk-roll", "Chicken Roll", (Ingredient("chk-roll", 2),)),
]


def upsert_reference_data(conn) -> None:
    ensure_schema(conn)
    upsert_skus(conn, DEFAULT_SKUS)


def wipe_all(conn) -> None:
    # Keep schema, delete data (order matters for FKs).
    for t in ["transactions", "skus"]:
        conn.execute(f"DELETE FROM {t};")
    conn.commit()


def load_demo_data(conn, *, seed: int = 7, days: int = 14, today: Optional[date] = None) -> int:
    """
    Restock the fridge, then for each past day check stock out to every branch,
    return part of it and log a little waste. Returns the number of rows written.
    """
    rng = random.Random(seed)
    upsert_reference_data(conn)
    today = today or local_today()
    start = today - timedelta(days=days)
    frozen = [s for s in DEFAULT_SKUS if s.category != SkuCategory.CONSUMABLES]

    ledger = restock(
        txn_date=start,
        quantities={s.id: s.packet_size * rng.randint(30, 60) for s in frozen},
        skus=DEFAULT_SKUS,
        user_name="demo",
    )

    for offset in range(1, days + 1):
        d = start + timedelta(days=offset)
        for br in DEFAULT_BRANCHES:
            out_qty = {s.id: s.packet_size * rng.randint(1, 4) for s in frozen}
            outs = check_out(txn_date=d, branch_id=br, quantities=out_qty, skus=DEFAULT_SKUS, user_name="demo")
            ledger += outs

            ret_qty = {k: rng.randint(0, v // 4) for k, v in out_qty.items()}
            if any(ret_qty.values()):
                ledger += check_in(
                    txn_date=d, branch_id=br, quantities=ret_qty, skus=DEFAULT_SKUS, ledger=ledger, user_name="demo"
                )
            if rng.random() < 0.3:
                sku = rng.choice(frozen)
                ledger += record_waste(
                    txn_date=d, branch_id=rng.choice([br, FRIDGE]), quantities={sku.id: rng.randint(1, 6)},
                    skus=DEFAULT_SKUS, user_name="demo",
                )

    append_transactions(conn, ledger)
    return len(ledger)
