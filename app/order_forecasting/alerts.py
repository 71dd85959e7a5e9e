# app/order_forecasting/alerts.py
import logging
import math
import pandas as pd
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from config import ForecastConfig

from .schema import (
    Client,
    ClientForecast,
    ClientForecasts,
    ClientProducts,
    InactiveClient,
    MonthlyConsumption,
    Notification,
    NotificationSummary,
    Order,
    ProductDue,
)
from .service import (
    calculate_client_stats,
    calculate_product_predictions,
    get_week_status,
    weeks_until,
)
from .utils import current_week, week_of_era

logger = logging.getLogger(__name__)


def orders_by_client(orders: Sequence[Order]) -> Dict[str, List[Order]]:
    grouped: Dict[str, List[Order]] = {}
    for order in orders:
        grouped.setdefault(order.client_id, []).append(order)
    return grouped


def _weeks_since(week: int, year: int, now: Optional[datetime]) -> int:
    current = current_week(now)
    return week_of_era(current.week, current.year) - week_of_era(week, year)


def _by_display_name(groups: List[ClientProducts]) -> List[ClientProducts]:
    return sorted(groups, key=lambda g: g.client.display_name.casefold())


# ────────────────────── DASHBOARD LISTS ──────────────────────

def client_forecasts(clients: Sequence[Client], orders: Sequence[Order],
                     now: Optional[datetime] = None) -> ClientForecasts:
    """One aggregate prediction per client, split into overdue and upcoming."""
    grouped = orders_by_client(orders)
    overdue, upcoming = [], []

    for client in clients:
        stats = calculate_client_stats(grouped.get(client.id, []))
        if stats.next_order_prediction is None:
            continue
        status = get_week_status(stats.next_order_prediction, now)
        forecast = ClientForecast(client=client, stats=stats, status=status)
        (overdue if status.weeks_until < 0 else upcoming).append(forecast)

    overdue.sort(key=lambda f: f.status.weeks_until)
    upcoming.sort(key=lambda f: f.status.weeks_until)
    return ClientForecasts(overdue=overdue, upcoming=upcoming)


def overdue_products(clients: Sequence[Client], orders: Sequence[Order],
                     now: Optional[datetime] = None) -> List[ClientProducts]:
    grouped = orders_by_client(orders)
    result = []

    for client in clients:
        due = []
        for prediction in calculate_product_predictions(grouped.get(client.id, [])):
            weeks_overdue = -weeks_until(prediction.next_order_prediction, now)
            if weeks_overdue > 0:
                due.append(ProductDue(
                    product_name=prediction.product_name,
                    product_category=prediction.product_category,
                    next_order_prediction=prediction.next_order_prediction,
                    weeks=weeks_overdue,
                ))
        if due:
            due.sort(key=lambda p: p.weeks, reverse=True)
            result.append(ClientProducts(client=client, products=due))

    return _by_display_name(result)


def upcoming_products(clients: Sequence[Client], orders: Sequence[Order],
                      now: Optional[datetime] = None) -> List[ClientProducts]:
    grouped = orders_by_client(orders)
    result = []

    for client in clients:
        due = []
        for prediction in calculate_product_predictions(grouped.get(client.id, [])):
            delta = weeks_until(prediction.next_order_prediction, now)
            if delta >= 0:
                due.append(ProductDue(
                    product_name=prediction.product_name,
                    product_category=prediction.product_category,
                    next_order_prediction=prediction.next_order_prediction,
                    weeks=delta,
                ))
        if due:
            due.sort(key=lambda p: p.weeks)
            result.append(ClientProducts(client=client, products=due))

    return _by_display_name(result)


def inactive_clients(clients: Sequence[Client], orders: Sequence[Order],
                     now: Optional[datetime] = None,
                     threshold: int = ForecastConfig.INACTIVE_WEEKS) -> List[InactiveClient]:
    grouped = orders_by_client(orders)
    result = []

    for client in clients:
        stats = calculate_client_stats(grouped.get(client.id, []))
        if stats.last_order is None:
            continue
        weeks_since = _weeks_since(stats.last_order.week, stats.last_order.year, now)
        if weeks_since >= threshold:
            result.append(InactiveClient(
                client=client,
                weeks_since_last_order=weeks_since,
                last_order=stats.last_order,
                total_orders=stats.total_orders,
            ))

    result.sort(key=lambda c: c.weeks_since_last_order, reverse=True)
    return result


def recent_orders(orders: Sequence[Order], now: Optional[datetime] = None,
                  window: int = ForecastConfig.RECENT_ORDER_WEEKS) -> List[Order]:
    return [o for o in orders if _weeks_since(o.week_number, o.year, now) <= window]


# ────────────────────── NOTIFICATIONS ──────────────────────

def _overdue_priority(weeks_overdue: int) -> str:
    if weeks_overdue >= ForecastConfig.OVERDUE_HIGH_WEEKS:
        return "high"
    if weeks_overdue >= ForecastConfig.OVERDUE_MEDIUM_WEEKS:
        return "medium"
    return "low"


def _weeks_text(count: int) -> str:
    return f"{count} week{'s' if count > 1 else ''}"


def generate_notifications(clients: Sequence[Client], orders: Sequence[Order],
                           now: Optional[datetime] = None) -> List[Notification]:
    created_at = now or datetime.now()
    grouped = orders_by_client(orders)
    notifications: List[Notification] = []

    for client in clients:
        client_orders = grouped.get(client.id, [])
        predictions = calculate_product_predictions(client_orders)
        common = {
            "client_id": client.id,
            "client_name": client.last_name,
            "created_at": created_at,
            "action_url": f"/client/{client.id}",
        }

        for prediction in predictions:
            weeks_overdue = -weeks_until(prediction.next_order_prediction, now)
            if weeks_overdue > 0:
                notifications.append(Notification(
                    id=f"overdue-{client.id}-{prediction.product_name}",
                    type="overdue",
                    title="Order overdue",
                    message=f"{client.last_name} - {prediction.product_name} is overdue by {_weeks_text(weeks_overdue)}",
                    product_name=prediction.product_name,
                    priority=_overdue_priority(weeks_overdue),
                    **common,
                ))

        for prediction in predictions:
            delta = weeks_until(prediction.next_order_prediction, now)
            if 0 < delta <= ForecastConfig.UPCOMING_ALERT_WEEKS:
                notifications.append(Notification(
                    id=f"upcoming-{client.id}-{prediction.product_name}",
                    type="upcoming",
                    title="Order expected soon",
                    message=f"{client.last_name} - {prediction.product_name} expected in {_weeks_text(delta)}",
                    product_name=prediction.product_name,
                    priority="high" if delta == 1 else "medium",
                    **common,
                ))

        stats = calculate_client_stats(client_orders)
        if stats.last_order is not None:
            weeks_since = _weeks_since(stats.last_order.week, stats.last_order.year, now)
            if weeks_since >= ForecastConfig.INACTIVE_WEEKS:
                notifications.append(Notification(
                    id=f"inactive-{client.id}",
                    type="inactive",
                    title="Inactive client",
                    message=f"{client.last_name} has not ordered for {weeks_since} weeks",
                    priority="high" if weeks_since >= ForecastConfig.INACTIVE_HIGH_WEEKS else "medium",
                    **common,
                ))

    logger.debug("Generated %d notifications for %d clients", len(notifications), len(clients))
    return notifications


def summarize_notifications(notifications: Sequence[Notification]) -> NotificationSummary:
    by_type = Counter({"overdue": 0, "upcoming": 0, "inactive": 0})
    by_type.update(n.type for n in notifications)
    by_priority = Counter({"high": 0, "medium": 0, "low": 0})
    by_priority.update(n.priority for n in notifications)

    return NotificationSummary(
        total=len(notifications),
        unread=sum(1 for n in notifications if not n.read),
        by_type=dict(by_type),
        by_priority=dict(by_priority),
        high_priority_unread=[n for n in notifications if n.priority == "high" and not n.read],
    )


# ────────────────────── CONSUMPTION CHART ──────────────────────

def _week_to_month(week: int) -> int:
    return min(max(math.ceil(week / ForecastConfig.WEEKS_PER_MONTH), 1), 12)


def monthly_consumption(orders: Sequence[Order]) -> List[MonthlyConsumption]:
    """
    Quantities per (year, approximate month), oldest first.

    Every order opens its month. Positive product lines add to their product
    and to the month total; orders without product lines add their flat total.
    """
    if not orders:
        return []

    rows = []
    for order in orders:
        year, month = order.year, _week_to_month(order.week_number)
        if order.products:
            rows.extend(
                {"year": year, "month": month, "product": line.name, "quantity": line.quantity}
                for line in order.products
                if line.quantity > 0
            )
            rows.append({"year": year, "month": month, "product": None, "quantity": 0.0})
        else:
            rows.append({"year": year, "month": month, "product": None, "quantity": order.total})

    df = pd.DataFrame(rows)
    totals = df.groupby(["year", "month"], sort=True)["quantity"].sum()
    per_product = df.dropna(subset=["product"]).groupby(["year", "month", "product"], sort=True)["quantity"].sum()

    products_by_month: Dict[tuple, Dict[str, float]] = {}
    for (year, month, name), qty in per_product.items():
        products_by_month.setdefault((year, month), {})[name] = float(qty)

    return [
        MonthlyConsumption(
            year=int(year),
            month=int(month),
            products=products_by_month.get((year, month), {}),
            total=float(total),
        )
        for (year, month), total in totals.items()
    ]
