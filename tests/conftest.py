"""
Pytest fixtures for reorder forecasting tests.
"""
import pytest
from datetime import datetime

from app.order_forecasting.schema import Client, Order


CATEGORY_BY_PRODUCT = {
    "Bob 35": "papier_thermo",
    "50x70": "papier_thermo",
    "Bob 50": "papier_paraffine",
    "500gr": "pots",
    "Tote bags": "reutilisable",
    "Stylos": "objet_pub",
}


def make_order(
    week: int,
    year: int,
    lines: dict = None,
    total: float = None,
    client_id: str = "c1",
    order_id: str = None,
) -> Order:
    """
    Create an Order for testing.

    Args:
        week, year: Order placement week
        lines: product name -> quantity; None builds a legacy order without products
        total: Order total; defaults to the sum of line quantities
        client_id: Owning client
    """
    products = None
    if lines is not None:
        products = [
            {"category": CATEGORY_BY_PRODUCT.get(name, "papier_thermo"), "name": name,
             "quantity": qty, "unit": "kg"}
            for name, qty in lines.items()
        ]
    if total is None:
        total = sum(lines.values()) if lines else 0

    return Order(
        id=order_id or f"{client_id}-{year}-{week}",
        client_id=client_id,
        week_number=week,
        year=year,
        products=products,
        total=total,
    )


# 2024-03-13 is in week 11 of 2024 on the dashboard's week axis
NOW = datetime(2024, 3, 13, 9, 30)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clients():
    return [
        Client(id="c1", last_name="Martin", company_name="Boulangerie Martin"),
        Client(id="c2", last_name="Dupont"),
        Client(id="c3", last_name="Zed", company_name="atelier Zed"),
        Client(id="c4", last_name="Zinc", company_name="Zinc"),
    ]


@pytest.fixture
def dashboard_orders():
    """
    c1: overdue Bob 35 (target week 47/2023, 16 weeks late)
    c2: single order 13 weeks ago, inactive; next order week 24/2024
    c3: Bob 50 due in 2 weeks (week 13/2024)
    c4: no orders
    """
    return [
        make_order(1, 2024, {"Bob 35": 100}, client_id="c1"),
        make_order(5, 2024, {"Bob 35": 60}, client_id="c1"),
        make_order(50, 2023, {"500gr": 26}, client_id="c2"),
        make_order(1, 2024, {"Bob 50": 100}, client_id="c3"),
        make_order(9, 2024, {"Bob 50": 200}, client_id="c3"),
    ]
