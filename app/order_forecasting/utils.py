# app/order_forecasting/utils.py

import logging
import math
import pandas as pd
from pathlib import Path
from datetime import date, datetime
from typing import IO, List, Optional, Union
from pydantic import ValidationError
from config import ForecastConfig, OrderConfig

from .schema import Order, WeekYear

logger = logging.getLogger(__name__)

WEEKS_PER_YEAR = ForecastConfig.WEEKS_PER_YEAR
ORDER_HEADER_COLUMNS = [OrderConfig.COL_CLIENT_ID, OrderConfig.COL_WEEK_NUMBER, OrderConfig.COL_YEAR]


# ────────────────────── WEEK ARITHMETIC ──────────────────────

def week_of_era(week: int, year: int) -> int:
    """Position on the linear week axis (year * 52 + week)."""
    return year * WEEKS_PER_YEAR + week


def current_week(now: Optional[datetime] = None) -> WeekYear:
    """
    Week of the year for `now` (defaults to the wall clock).

    Approximation used by every stored prediction: counts days since Jan 1,
    offsets by the weekday of Jan 1 (Sunday = 0) and caps at 52. This is
    NOT ISO-8601 week numbering.
    """
    if now is None:
        now = datetime.now()
    year = now.year
    start_of_year = date(year, 1, 1)
    days = (now.date() - start_of_year).days
    start_dow = (start_of_year.weekday() + 1) % 7
    week = math.ceil((days + start_dow + 1) / 7)
    return WeekYear(week=min(week, WEEKS_PER_YEAR), year=year)


def normalize_week(raw_week: int, year: int) -> WeekYear:
    """Fold a raw week number into [1, 52], carrying whole years into `year`."""
    offset = raw_week - 1
    return WeekYear(week=offset % WEEKS_PER_YEAR + 1, year=year + offset // WEEKS_PER_YEAR)


def format_week(week: int, year: int) -> str:
    return f"Week {week}, {year}"


def _floor_half_up(scaled: float) -> int:
    # floor(x + 0.5) would carry 0.49999999999999994 up to 1
    r = math.floor(scaled)
    return r + 1 if scaled - r >= 0.5 else r


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like JavaScript's Math.round(value * 10**digits) / 10**digits."""
    factor = 10 ** digits
    return _floor_half_up(value * factor) / factor


def round_weeks(value: float) -> int:
    return _floor_half_up(value)


# ────────────────────── ORDER IMPORT ──────────────────────

def _cell(row: pd.Series, column: str, default=None):
    if column not in row.index:
        return default
    value = row[column]
    return default if pd.isna(value) else value


def _whole_number(value, column: str, order_id: str) -> int:
    number = float(value)
    if not number.is_integer():
        raise ValueError(f"Invalid order {order_id}: {column} must be a whole number, got {value}")
    return int(number)


def orders_from_frame(df: pd.DataFrame) -> List[Order]:
    """Build orders from an order-line table (one row per product line)."""
    missing = [c for c in OrderConfig.REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(missing)}")

    before = len(df)
    df = df.dropna(subset=OrderConfig.REQUIRED_COLUMNS).copy()
    if len(df) < before:
        logger.warning("Dropped %d rows without order id, client, week or year", before - len(df))

    df[OrderConfig.COL_ORDER_ID] = df[OrderConfig.COL_ORDER_ID].astype(str)
    df[OrderConfig.COL_CLIENT_ID] = df[OrderConfig.COL_CLIENT_ID].astype(str)
    has_products = all(c in df.columns for c in OrderConfig.PRODUCT_COLUMNS)

    orders = []
    for order_id, group in df.groupby(OrderConfig.COL_ORDER_ID, sort=False):
        # Every line of an order repeats its header fields
        for column in ORDER_HEADER_COLUMNS:
            if group[column].nunique() > 1:
                raise ValueError(f"Invalid order {order_id}: conflicting {column} values")
        first = group.iloc[0]
        week_number = _whole_number(first[OrderConfig.COL_WEEK_NUMBER], OrderConfig.COL_WEEK_NUMBER, order_id)
        year = _whole_number(first[OrderConfig.COL_YEAR], OrderConfig.COL_YEAR, order_id)

        products = None
        if has_products:
            lines = group.dropna(subset=[OrderConfig.COL_PRODUCT_NAME])
            if not lines.empty:
                products = [
                    {
                        "category": _cell(row, OrderConfig.COL_CATEGORY, ""),
                        "name": str(row[OrderConfig.COL_PRODUCT_NAME]),
                        "quantity": float(_cell(row, OrderConfig.COL_QUANTITY, 0)),
                        "unit": _cell(row, OrderConfig.COL_UNIT, "unité"),
                    }
                    for _, row in lines.iterrows()
                ]

        # Order total is the sum of line quantities unless the export carries it
        total = _cell(first, OrderConfig.COL_TOTAL)
        if total is None:
            total = sum(p["quantity"] for p in products) if products else 0

        try:
            orders.append(Order(
                id=order_id,
                client_id=first[OrderConfig.COL_CLIENT_ID],
                week_number=week_number,
                year=year,
                products=products,
                total=float(total),
            ))
        except ValidationError as e:
            raise ValueError(f"Invalid order {order_id}: {e}") from e

    return orders


def load_orders(source: Union[str, Path, IO]) -> List[Order]:
    """Read an order-line CSV export from a path or an open binary/text buffer."""
    if isinstance(source, (str, Path)):
        source = Path(source)
        if not source.exists():
            raise FileNotFoundError(f"Order export not found: {source}")
        name = source.name
    else:
        name = getattr(source, "name", "upload")

    try:
        df = pd.read_csv(source, dtype={OrderConfig.COL_ORDER_ID: str, OrderConfig.COL_CLIENT_ID: str})
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"Order export {name} is empty") from e
    orders = orders_from_frame(df)

    logger.info("Loaded %d orders for %d clients from %s",
                len(orders), len({o.client_id for o in orders}), name)

    return orders
