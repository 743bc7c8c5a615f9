from __future__ import annotations

from datetime import date
from typing import Sequence

import pandas as pd

from opscore.models import Sku
from opscore.services.ordering import OrderSuggestion
from opscore.services.reconciliation import DailyReportItem, ReconciliationReport


def _sku_index(skus: Sequence[Sku]) -> dict[str, Sku]:
    return {s.id: s for s in skus}


def reconciliation_frame(report: ReconciliationReport, skus: Sequence[Sku]) -> pd.DataFrame:
    by_id = _sku_index(skus)
    rows = [
        {
            "sku_id": l.sku_id,
            "sku": by_id[l.sku_id].name if l.sku_id in by_id else l.sku_id,
            "category": by_id[l.sku_id].category.value if l.sku_id in by_id else None,
            "used": l.used,
            "sold": l.sold,
            "diff": l.diff,
            "variance_pct": round(l.variance_percent, 1),
        }
        for l in report.lines
    ]
    df = pd.DataFrame(rows, columns=["sku_id", "sku", "category", "used", "sold", "diff", "variance_pct"])
    for col in ["used", "sold", "diff", "variance_pct"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def flag_losses(df: pd.DataFrame, threshold_pct: float = 2.0) -> pd.DataFrame:
    # Rows whose physical loss is worse than -threshold_pct of usage.
    return df[df["variance_pct"].fillna(0) < -abs(float(threshold_pct))]


def daily_report_frame(items: Sequence[DailyReportItem], skus: Sequence[Sku]) -> pd.DataFrame:
    by_id = _sku_index(skus)
    rows = []
    for it in items:
        sku = by_id.get(it.sku_id)
        rows.append(
            {
                "sku_id": it.sku_id,
                "sku": sku.name if sku else it.sku_id,
                "category": sku.category.value if sku else None,
                "dietary": sku.dietary.value if sku else None,
                "taken": it.taken,
                "returned": it.returned,
                "waste": it.waste,
                "sold": it.sold,
            }
        )
    return pd.DataFrame(rows, columns=["sku_id", "sku", "category", "dietary", "taken", "returned", "waste", "sold"])


def suggestion_frame(suggestion: OrderSuggestion) -> pd.DataFrame:
    rows = [
        {
            "sku_id": l.sku.id,
            "sku": l.sku.name,
            "trend": l.trend,
            "share_pct": l.share_percent,
            "top_seller": l.is_top_seller,
            "daily_avg_pkts": l.daily_avg_packets,
            "burn_until_arrival_pkts": l.projected_burn_packets,
            "suggest_pkts": l.suggest_pkts,
            "est_cost": l.suggest_pkts * (l.sku.cost_price or 0.0),
        }
        for l in suggestion.lines
    ]
    return pd.DataFrame(
        rows,
        columns=[
            "sku_id",
            "sku",
            "trend",
            "share_pct",
            "top_seller",
            "daily_avg_pkts",
            "burn_until_arrival_pkts",
            "suggest_pkts",
            "est_cost",
        ],
    )


def order_text(suggestion: OrderSuggestion, arrival_date: date) -> str:
    """Plain-text order for pasting into a supplier chat."""
    header = f"Order for {arrival_date.strftime('%a %b %d %Y')}\n------------------\n"
    body = "\n".join(f"{l.sku.name}: {l.suggest_pkts} pkts" for l in suggestion.lines if l.suggest_pkts > 0)
    return header + body
