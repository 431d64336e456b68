"""
Table-level summaries over bulk rows and current snapshots.

Averages exclude rows whose value is undefined from both the sum and the
count, so a missing leg price never drags a mean towards zero.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
import numpy as np
import pandas as pd
from marketlens.config import settings
from marketlens.core.metrics import LEG_PAIRS, days_to_expiry, is_atm, monthly_premium_percent, otm_percent, premium_percent
from marketlens.core.models import Side
from marketlens.core.reconciler import EntityView, SnapshotReconciler

DEFAULT_LEG_COLUMNS = {
    "underlying": "underlyingPrice",
    "near": "nearFuturePrice",
    "next": "nextFuturePrice",
    "far": "farFuturePrice",
}

def arbitrage_frame(rows: Iterable[Mapping], columns: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    """Rows plus `<pair>_amount` / `<pair>_pct` columns for each leg pair"""
    columns = columns or DEFAULT_LEG_COLUMNS
    df = pd.DataFrame(list(rows))

    for leg, col in columns.items():
        df[leg] = pd.to_numeric(df[col], errors="coerce") if col in df.columns else np.nan

    # Zero base is undefined, same as missing
    base = df["underlying"].where(df["underlying"] != 0)
    for name, (a, b) in LEG_PAIRS.items():
        amount = df[a] - df[b]
        df[f"{name}_amount"] = amount
        df[f"{name}_pct"] = amount / base * 100
    return df

def filter_by_gap(frame: pd.DataFrame, ranges: Dict[str, Tuple[float, float]]) -> pd.DataFrame:
    """Keep rows whose gap % lies in [min, max] for every given pair; undefined gaps never pass"""
    mask = pd.Series(True, index=frame.index)
    for name, (lo, hi) in ranges.items():
        if name not in LEG_PAIRS:
            raise ValueError(f"Unknown gap pair: {name}")
        mask &= frame[f"{name}_pct"].between(lo, hi)
    return frame[mask]

def average_gap(frame: pd.DataFrame, name: str) -> Optional[float]:
    values = frame[f"{name}_pct"].dropna()
    if values.empty:
        return None
    return float(values.mean())

def covered_calls_frame(rows: Iterable[Mapping], underlying_price: Optional[float] = None,
                        as_of: Optional[datetime] = None,
                        atm_threshold: Optional[float] = None) -> pd.DataFrame:
    """Option rows with OTM %, premium %, 30-day premium % and ATM flag recomputed"""
    threshold = settings.ATM_THRESHOLD_PERCENT if atm_threshold is None else atm_threshold
    records = []
    for row in rows:
        underlying = underlying_price if underlying_price is not None else row.get("underlying_price")
        strike = row.get("strike")
        side = row.get("option_type") or Side.CE.value
        premium_pct = premium_percent(row.get("premium"), underlying)
        records.append({
            **row,
            "otm_pct": otm_percent(underlying, strike, side),
            "premium_pct": premium_pct,
            "monthly_premium_pct": monthly_premium_percent(
                premium_pct, days_to_expiry(row.get("expiry_date"), as_of)
            ),
            "is_atm": is_atm(underlying, strike, threshold),
        })
    return pd.DataFrame(records)

def side_totals(view: EntityView) -> Dict[str, float]:
    """Volume and OI summed per option side across the current snapshots"""
    totals = {"ce_volume": 0.0, "ce_oi": 0.0, "pe_volume": 0.0, "pe_oi": 0.0}
    records = [
        {"side": side.value, "volume": snap.volume, "oi": snap.oi}
        for sides in view.values()
        for side, snap in sides.items()
        if side in (Side.CE, Side.PE)
    ]
    if not records:
        return totals

    df = pd.DataFrame(records)
    for col in ("volume", "oi"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    grouped = df.groupby("side")[["volume", "oi"]].sum()

    for side in grouped.index:
        prefix = side.lower()
        totals[f"{prefix}_volume"] = float(grouped.loc[side, "volume"])
        totals[f"{prefix}_oi"] = float(grouped.loc[side, "oi"])
    return totals

def last_seen(symbols: Iterable[str], reconciler: SnapshotReconciler) -> List[dict]:
    return [{"symbol": s, "ts": reconciler.last_live.get(s)} for s in symbols]
