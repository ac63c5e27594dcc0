"""
The query catalogue computed on a clean sales DataFrame.

Each function mirrors the SQL query of the same name in
walmart_etl.analytics.queries and returns the same columns. Rank-based
questions are answered in two passes: aggregate per group, then rank
within the partition and keep every row with rank 1.
"""

from collections import OrderedDict

import numpy as np
import pandas as pd

SHIFTS = ["Morning", "Afternoon", "Evening"]


def _top_ranked(agg: pd.DataFrame, partition: str, measure: str) -> pd.DataFrame:
    # Competition ranking ("min"): every row tied for first keeps rank 1
    agg["rank"] = agg.groupby(partition)[measure].rank(method="min", ascending=False).astype("int64")
    return agg[agg["rank"] == 1]


def shift_of_hour(hours: pd.Series) -> pd.Series:
    """Morning before 12:00, Afternoon 12:00-17:59, Evening otherwise."""
    buckets = np.select([hours < 12, hours <= 17], SHIFTS[:2], default=SHIFTS[2])
    return pd.Series(buckets, index=hours.index)


def payment_method_volume(df: pd.DataFrame) -> pd.DataFrame:
    return (
        df.groupby("payment_method")
        .agg(no_payments=("invoice_id", "size"), no_qty_sold=("quantity", "sum"))
        .reset_index()
        .sort_values("payment_method", ignore_index=True)
    )


def top_category_by_rating(df: pd.DataFrame) -> pd.DataFrame:
    agg = df.groupby(["branch", "category"]).agg(avg_rating=("rating", "mean")).reset_index()
    top = _top_ranked(agg, "branch", "avg_rating")
    return top.sort_values(["branch", "avg_rating", "category"], ascending=[True, False, True], ignore_index=True)


def busiest_day_by_branch(df: pd.DataFrame) -> pd.DataFrame:
    days = pd.to_datetime(df["date"]).dt.day_name()
    agg = (
        df.assign(day_name=days)
        .groupby(["branch", "day_name"])
        .agg(no_transactions=("invoice_id", "size"))
        .reset_index()
    )
    top = _top_ranked(agg, "branch", "no_transactions")
    return top.sort_values(["branch", "day_name"], ignore_index=True)


def items_sold_by_payment_method(df: pd.DataFrame) -> pd.DataFrame:
    return (
        df.groupby("payment_method")
        .agg(no_qty_sold=("quantity", "sum"))
        .reset_index()
        .sort_values("payment_method", ignore_index=True)
    )


def rating_stats_by_city_category(df: pd.DataFrame) -> pd.DataFrame:
    return (
        df.groupby(["city", "category"])
        .agg(min_rating=("rating", "min"), max_rating=("rating", "max"), avg_rating=("rating", "mean"))
        .reset_index()
        .sort_values(["city", "category"], ignore_index=True)
    )


def profit_by_category(df: pd.DataFrame) -> pd.DataFrame:
    agg = (
        df.assign(profit=df["total"] * df["profit_margin"])
        .groupby("category")
        .agg(total_revenue=("total", "sum"), profit=("profit", "sum"))
        .reset_index()
    )
    return agg.sort_values(["profit", "category"], ascending=[False, True], ignore_index=True)


def preferred_payment_by_branch(df: pd.DataFrame) -> pd.DataFrame:
    agg = df.groupby(["branch", "payment_method"]).agg(total_trans=("invoice_id", "size")).reset_index()
    top = _top_ranked(agg, "branch", "total_trans")
    return top.sort_values(["branch", "payment_method"], ignore_index=True)


def transactions_by_shift(df: pd.DataFrame) -> pd.DataFrame:
    hours = pd.Series([t.hour for t in df["time"]], index=df.index, dtype="int64")
    agg = (
        df.assign(shift=shift_of_hour(hours))
        .groupby(["branch", "shift"])
        .agg(no_transactions=("invoice_id", "size"))
        .reset_index()
    )
    return agg.sort_values(
        ["branch", "no_transactions", "shift"], ascending=[True, False, True], ignore_index=True
    )


def revenue_decline_2022_2023(df: pd.DataFrame) -> pd.DataFrame:
    years = pd.to_datetime(df["date"]).dt.year
    by_year = df.assign(year=years).pivot_table(index="branch", columns="year", values="total", aggfunc="sum")
    if 2022 not in by_year.columns or 2023 not in by_year.columns:
        return pd.DataFrame(columns=["branch", "last_year_revenue", "current_year_revenue", "decline_ratio"])

    joined = by_year[[2022, 2023]].dropna()
    joined.columns = ["last_year_revenue", "current_year_revenue"]
    joined = joined[joined["last_year_revenue"] > joined["current_year_revenue"]].copy()
    joined["decline_ratio"] = (
        (joined["last_year_revenue"] - joined["current_year_revenue"]) / joined["last_year_revenue"] * 100
    ).round(2)
    joined = joined.rename_axis("branch").reset_index()
    return joined.sort_values(["decline_ratio", "branch"], ascending=[False, True], ignore_index=True).head(5)


CATALOGUE = OrderedDict(
    [
        ("payment_method_volume", payment_method_volume),
        ("top_category_by_rating", top_category_by_rating),
        ("busiest_day_by_branch", busiest_day_by_branch),
        ("items_sold_by_payment_method", items_sold_by_payment_method),
        ("rating_stats_by_city_category", rating_stats_by_city_category),
        ("profit_by_category", profit_by_category),
        ("preferred_payment_by_branch", preferred_payment_by_branch),
        ("transactions_by_shift", transactions_by_shift),
        ("revenue_decline_2022_2023", revenue_decline_2022_2023),
    ]
)


def run_all_frames(df: pd.DataFrame) -> "OrderedDict[str, pd.DataFrame]":
    return OrderedDict((name, compute(df)) for name, compute in CATALOGUE.items())
