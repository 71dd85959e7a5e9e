# app/order_forecasting/service.py
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from config import ForecastConfig

from .schema import ClientStats, Order, ProductPrediction, WeekStatus, WeekYear
from .utils import (
    current_week,
    normalize_week,
    round_half_up,
    round_weeks,
    week_of_era,
)

logger = logging.getLogger(__name__)

DEFAULT_CYCLE_WEEKS = ForecastConfig.DEFAULT_CYCLE_WEEKS
SAFETY_BUFFER_WEEKS = ForecastConfig.SAFETY_BUFFER_WEEKS
WEEKS_PER_MONTH = ForecastConfig.WEEKS_PER_MONTH
DUE_SOON_WEEKS = ForecastConfig.DUE_SOON_WEEKS


def _order_key(order: Order):
    return (order.year, order.week_number)


def sort_orders_desc(orders: Sequence[Order]) -> List[Order]:
    """Newest first; ties keep their input order. Never mutates `orders`."""
    return sorted(orders, key=_order_key, reverse=True)


def sort_orders_asc(orders: Sequence[Order]) -> List[Order]:
    return sorted(orders, key=_order_key)


def _weeks_span(first: Order, last: Order) -> int:
    return week_of_era(last.week_number, last.year) - week_of_era(first.week_number, first.year)


def _find_line_quantity(order: Order, product_name: str) -> Optional[float]:
    # Only the first line carrying the name counts
    if not order.products:
        return None
    for line in order.products:
        if line.name == product_name:
            return line.quantity
    return None


# ────────────────────── AGGREGATE STATISTICS ──────────────────────

def calculate_client_stats(orders: Sequence[Order]) -> ClientStats:
    """
    Aggregate consumption and next-order prediction for one client.

    - One order: assume a fixed reorder cycle (DEFAULT_CYCLE_WEEKS).
    - Several orders: weekly rate = quantity ordered before the latest order
      divided by the weeks between first and latest order. The latest order is
      expected to last total / rate weeks, minus SAFETY_BUFFER_WEEKS.
    """
    if not orders:
        return ClientStats()

    sorted_orders = sort_orders_desc(orders)
    last_order = sorted_orders[0]

    weekly_consumption = 0.0
    monthly_consumption = 0.0
    average_weeks_between_orders = 0.0
    next_order_prediction: Optional[WeekYear] = None

    if len(sorted_orders) == 1:
        next_order_prediction = normalize_week(last_order.week_number + DEFAULT_CYCLE_WEEKS, last_order.year)
        weekly_consumption = last_order.total / DEFAULT_CYCLE_WEEKS
        monthly_consumption = weekly_consumption * WEEKS_PER_MONTH
        average_weeks_between_orders = DEFAULT_CYCLE_WEEKS
    else:
        chronological = sorted_orders[::-1]
        first_to_second_last = chronological[:-1]
        history_total = sum(order.total for order in first_to_second_last)

        first, latest = chronological[0], chronological[-1]
        total_weeks_span = _weeks_span(first, latest)

        if total_weeks_span > 0:
            weekly_consumption = history_total / total_weeks_span
            monthly_consumption = weekly_consumption * WEEKS_PER_MONTH
            average_weeks_between_orders = total_weeks_span / (len(sorted_orders) - 1)

            if weekly_consumption > 0:
                weeks_left = latest.total / weekly_consumption - SAFETY_BUFFER_WEEKS
                next_order_prediction = normalize_week(
                    latest.week_number + round_weeks(weeks_left), latest.year
                )
        else:
            logger.debug("Client %s: all %d orders fall in the same week, no rate",
                         last_order.client_id, len(sorted_orders))

    weeks_until_next_order = 0.0
    last_order_duration = 0.0
    if weekly_consumption > 0:
        weeks_until_next_order = last_order.total / weekly_consumption - SAFETY_BUFFER_WEEKS
        last_order_duration = last_order.total / weekly_consumption - SAFETY_BUFFER_WEEKS

    return ClientStats(
        total_orders=len(sorted_orders),
        average_weeks_between_orders=round_half_up(average_weeks_between_orders, 1),
        weekly_consumption=round_half_up(weekly_consumption, 2),
        monthly_consumption=round_half_up(monthly_consumption, 2),
        last_order_duration=round_half_up(last_order_duration, 1),
        next_order_prediction=next_order_prediction,
        last_order=WeekYear(week=last_order.week_number, year=last_order.year),
        weeks_until_next_order=round_half_up(weeks_until_next_order, 2),
    )


# ────────────────────── PER-PRODUCT PREDICTIONS ──────────────────────

def _last_order_for_product(orders: Sequence[Order], product_name: str) -> Optional[Dict]:
    for order in sort_orders_desc(orders):
        quantity = _find_line_quantity(order, product_name)
        if quantity is not None and quantity > 0:
            return {"week_number": order.week_number, "year": order.year, "quantity": quantity}
    return None


def calculate_product_consumption(orders: Sequence[Order], product_name: str) -> Dict[str, float]:
    """Weekly/monthly rate of one product, same method as the aggregate rate."""
    if len(orders) < 2:
        return {"weekly_consumption": 0.0, "monthly_consumption": 0.0}

    chronological = sort_orders_asc(orders)
    history_quantity = sum(
        _find_line_quantity(order, product_name) or 0 for order in chronological[:-1]
    )
    total_weeks_span = _weeks_span(chronological[0], chronological[-1])

    if total_weeks_span > 0 and history_quantity > 0:
        weekly_consumption = history_quantity / total_weeks_span
        return {
            "weekly_consumption": round_half_up(weekly_consumption, 2),
            "monthly_consumption": round_half_up(weekly_consumption * WEEKS_PER_MONTH, 2),
        }
    return {"weekly_consumption": 0.0, "monthly_consumption": 0.0}


def calculate_product_predictions(orders: Sequence[Order]) -> List[ProductPrediction]:
    if not orders:
        return []

    # product name -> category, first-seen order, last write wins
    all_products: Dict[str, str] = {}
    for order in orders:
        for line in order.products or []:
            if line.quantity > 0:
                all_products[line.name] = line.category

    predictions = []
    for product_name, category in all_products.items():
        last_line = _last_order_for_product(orders, product_name)
        if last_line is None:
            continue

        weekly_consumption = 0.0
        weeks_until_next_order = float(DEFAULT_CYCLE_WEEKS)

        if len(orders) == 1:
            weekly_consumption = last_line["quantity"] / DEFAULT_CYCLE_WEEKS
        else:
            weekly_consumption = calculate_product_consumption(orders, product_name)["weekly_consumption"]
            if weekly_consumption > 0:
                weeks_until_next_order = last_line["quantity"] / weekly_consumption - SAFETY_BUFFER_WEEKS

        next_order_prediction = normalize_week(
            last_line["week_number"] + round_weeks(weeks_until_next_order), last_line["year"]
        )

        predictions.append(ProductPrediction(
            product_name=product_name,
            product_category=category,
            next_order_prediction=next_order_prediction,
            weekly_consumption=round_half_up(weekly_consumption, 2),
            weeks_until_next_order=round_half_up(weeks_until_next_order, 2),
        ))

    logger.debug("Computed %d product predictions from %d orders", len(predictions), len(orders))
    return predictions


def weeks_until(target: WeekYear, now: Optional[datetime] = None) -> int:
    current = current_week(now)
    return week_of_era(target.week, target.year) - week_of_era(current.week, current.year)


def get_next_product_prediction(orders: Sequence[Order], now: Optional[datetime] = None) -> Optional[ProductPrediction]:
    """Product expected soonest, with weeks_until_next_order relative to `now`."""
    predictions = calculate_product_predictions(orders)
    if not predictions:
        return None

    closest = min(predictions, key=lambda p: weeks_until(p.next_order_prediction, now))
    return closest.model_copy(update={
        "weeks_until_next_order": float(weeks_until(closest.next_order_prediction, now)),
    })


# ────────────────────── STATUS ──────────────────────

def _plural(count: int) -> str:
    return f"{count} week{'s' if count != 1 else ''}"


def get_week_status(target: WeekYear, now: Optional[datetime] = None) -> WeekStatus:
    delta = weeks_until(target, now)

    if delta < 0:
        return WeekStatus(kind="overdue", label=f"overdue by {_plural(abs(delta))}", weeks_until=delta)
    if delta <= DUE_SOON_WEEKS:
        label = "this week" if delta == 0 else f"in {_plural(delta)}"
        return WeekStatus(kind="due_soon", label=label, weeks_until=delta)
    return WeekStatus(kind="upcoming", label=f"in {delta} weeks", weeks_until=delta)
