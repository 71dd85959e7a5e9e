"""
Tests for the consumption and next-order prediction engine.

These tests verify:
1. Aggregate client statistics (empty, single order, history, degenerate spans)
2. Per-product predictions
3. Closest product prediction
4. Week status classification
"""
import pytest
from datetime import datetime

from conftest import NOW, make_order
from app.order_forecasting.schema import ClientStats, WeekYear
from app.order_forecasting.service import (
    calculate_client_stats,
    calculate_product_consumption,
    calculate_product_predictions,
    get_next_product_prediction,
    get_week_status,
)


class TestClientStatsEmpty:

    def test_empty_orders_return_zero_stats(self):
        stats = calculate_client_stats([])

        assert stats == ClientStats()
        assert stats.total_orders == 0
        assert stats.weekly_consumption == 0
        assert stats.next_order_prediction is None
        assert stats.last_order is None


class TestClientStatsSingleOrder:
    """A lone order assumes a 26-week reorder cycle."""

    def test_single_order_uses_six_month_cycle(self):
        stats = calculate_client_stats([make_order(40, 2024, total=130)])

        assert stats.total_orders == 1
        assert stats.weekly_consumption == 5.0
        assert stats.monthly_consumption == pytest.approx(21.65)
        assert stats.average_weeks_between_orders == 26
        assert stats.next_order_prediction == WeekYear(week=14, year=2025)
        assert stats.last_order == WeekYear(week=40, year=2024)

    def test_single_order_weeks_until_uses_safety_buffer(self):
        """total / (total / 26) - 12 = 14, even though the prediction uses 26."""
        stats = calculate_client_stats([make_order(40, 2024, total=130)])

        assert stats.weeks_until_next_order == pytest.approx(14.0)
        assert stats.last_order_duration == pytest.approx(14.0)

    def test_single_zero_total_order(self):
        stats = calculate_client_stats([make_order(10, 2024, total=0)])

        assert stats.weekly_consumption == 0
        assert stats.weeks_until_next_order == 0
        assert stats.next_order_prediction == WeekYear(week=36, year=2024)

    def test_weekly_consumption_rounded_to_two_decimals(self):
        stats = calculate_client_stats([make_order(3, 2024, total=100)])
        assert stats.weekly_consumption == 3.85


class TestClientStatsHistory:

    def test_two_orders_reference_example(self):
        orders = [make_order(1, 2024, total=100), make_order(11, 2024, total=130)]
        stats = calculate_client_stats(orders)

        assert stats.weekly_consumption == 10.0
        assert stats.monthly_consumption == pytest.approx(43.3)
        assert stats.average_weeks_between_orders == 10.0
        assert stats.weeks_until_next_order == pytest.approx(1.0)
        assert stats.last_order_duration == pytest.approx(1.0)
        assert stats.next_order_prediction == WeekYear(week=12, year=2024)

    def test_three_orders_unsorted_input(self):
        orders = [
            make_order(30, 2023, total=100),
            make_order(2, 2024, total=150),
            make_order(10, 2023, total=200),
        ]
        stats = calculate_client_stats(orders)

        # (200 + 100) / 44 weeks
        assert stats.weekly_consumption == 6.82
        assert stats.monthly_consumption == 29.52
        assert stats.average_weeks_between_orders == 22.0
        assert stats.weeks_until_next_order == pytest.approx(10.0)
        assert stats.next_order_prediction == WeekYear(week=12, year=2024)
        assert stats.last_order == WeekYear(week=2, year=2024)

    def test_input_order_not_mutated(self):
        orders = [
            make_order(30, 2023, total=100),
            make_order(2, 2024, total=150),
            make_order(10, 2023, total=200),
        ]
        before = [o.id for o in orders]

        calculate_client_stats(orders)
        calculate_product_predictions(orders)

        assert [o.id for o in orders] == before

    def test_prediction_wraps_into_next_year(self):
        orders = [make_order(40, 2024, total=100), make_order(50, 2024, total=300)]
        stats = calculate_client_stats(orders)

        # 300 / 10 - 12 = 18 weeks after week 50
        assert stats.next_order_prediction == WeekYear(week=16, year=2025)

    def test_weeks_rounded_half_up(self):
        """145 / 10 - 12 = 2.5 weeks rounds to 3, not to even."""
        orders = [make_order(1, 2024, total=100), make_order(11, 2024, total=145)]
        stats = calculate_client_stats(orders)

        assert stats.weeks_until_next_order == 2.5
        assert stats.last_order_duration == 2.5
        assert stats.next_order_prediction == WeekYear(week=14, year=2024)

    def test_same_week_orders_give_no_prediction(self):
        orders = [make_order(8, 2024, total=50), make_order(8, 2024, total=70)]
        stats = calculate_client_stats(orders)

        assert stats.total_orders == 2
        assert stats.weekly_consumption == 0
        assert stats.average_weeks_between_orders == 0
        assert stats.weeks_until_next_order == 0
        assert stats.next_order_prediction is None
        assert stats.last_order == WeekYear(week=8, year=2024)

    def test_zero_history_total_gives_no_prediction(self):
        orders = [make_order(1, 2024, total=0), make_order(5, 2024, total=50)]
        stats = calculate_client_stats(orders)

        assert stats.weekly_consumption == 0
        assert stats.average_weeks_between_orders == 4.0
        assert stats.next_order_prediction is None

    def test_legacy_orders_counted(self):
        orders = [make_order(1, 2024, lines=None, total=100), make_order(11, 2024, {"Bob 35": 130})]
        stats = calculate_client_stats(orders)

        assert stats.total_orders == 2
        assert stats.weekly_consumption == 10.0


class TestProductPredictions:

    def test_empty(self):
        assert calculate_product_predictions([]) == []

    def test_single_order_default_cycle(self):
        orders = [make_order(10, 2024, {"Bob 35": 52, "50x70": 0})]
        predictions = calculate_product_predictions(orders)

        assert len(predictions) == 1
        p = predictions[0]
        assert p.product_name == "Bob 35"
        assert p.product_category == "papier_thermo"
        assert p.weekly_consumption == 2.0
        assert p.weeks_until_next_order == 26
        assert p.next_order_prediction == WeekYear(week=36, year=2024)

    def test_each_product_has_its_own_cycle(self):
        orders = [
            make_order(1, 2024, {"Bob 35": 100, "50x70": 40}),
            make_order(11, 2024, {"Bob 35": 130}),
        ]
        by_name = {p.product_name: p for p in calculate_product_predictions(orders)}

        bob = by_name["Bob 35"]
        assert bob.weekly_consumption == 10.0
        assert bob.weeks_until_next_order == pytest.approx(1.0)
        assert bob.next_order_prediction == WeekYear(week=12, year=2024)

        # last seen week 1 with 40 units at 4 / week: 40 / 4 - 12 = -2
        sheets = by_name["50x70"]
        assert sheets.weekly_consumption == 4.0
        assert sheets.weeks_until_next_order == pytest.approx(-2.0)
        assert sheets.next_order_prediction == WeekYear(week=51, year=2023)

    def test_product_only_in_latest_order_keeps_default(self):
        orders = [
            make_order(1, 2024, {"Bob 35": 100}),
            make_order(11, 2024, {"Bob 35": 130, "500gr": 20}),
        ]
        pots = next(p for p in calculate_product_predictions(orders) if p.product_name == "500gr")

        assert pots.product_category == "pots"
        assert pots.weekly_consumption == 0
        assert pots.weeks_until_next_order == 26
        assert pots.next_order_prediction == WeekYear(week=37, year=2024)

    def test_zero_and_absent_products_never_predicted(self):
        orders = [
            make_order(1, 2024, {"Bob 35": 100, "Stylos": 0}),
            make_order(11, 2024, {"Bob 35": 130, "Stylos": 0}),
        ]
        names = [p.product_name for p in calculate_product_predictions(orders)]
        assert names == ["Bob 35"]

    def test_legacy_orders_contribute_no_products(self):
        orders = [make_order(1, 2024, lines=None, total=300), make_order(5, 2024, lines=None, total=200)]
        assert calculate_product_predictions(orders) == []

    def test_legacy_orders_still_count_towards_single_order_rule(self):
        """Two orders in total, so the per-product rate comes from history."""
        orders = [make_order(1, 2024, lines=None, total=300), make_order(5, 2024, {"Bob 35": 20})]
        p = calculate_product_predictions(orders)[0]

        assert p.weekly_consumption == 0
        assert p.weeks_until_next_order == 26

    def test_emission_follows_first_appearance(self):
        orders = [
            make_order(11, 2024, {"Tote bags": 5, "Bob 35": 10}),
            make_order(1, 2024, {"Bob 50": 7, "Bob 35": 10}),
        ]
        names = [p.product_name for p in calculate_product_predictions(orders)]
        assert names == ["Tote bags", "Bob 35", "Bob 50"]

    def test_category_from_last_occurrence_in_input(self):
        first = make_order(1, 2024, {"Bob 35": 100})
        second = make_order(11, 2024, {"Bob 35": 130})
        second.products[0] = second.products[0].model_copy(update={"category": "papier_paraffine"})

        assert calculate_product_predictions([first, second])[0].product_category == "papier_paraffine"
        assert calculate_product_predictions([second, first])[0].product_category == "papier_thermo"

    def test_first_line_with_name_wins_within_order(self):
        order = make_order(1, 2024, {"Bob 35": 0})
        order.products.append(order.products[0].model_copy(update={"quantity": 40}))
        later = make_order(11, 2024, {"Bob 35": 50})

        p = calculate_product_predictions([order, later])[0]
        # history of the first order counts its first Bob 35 line (0)
        assert p.weekly_consumption == 0

    def test_product_consumption_rate_rounded(self):
        orders = [make_order(1, 2024, {"Bob 35": 100}), make_order(4, 2024, {"Bob 35": 100})]
        rate = calculate_product_consumption(orders, "Bob 35")

        assert rate["weekly_consumption"] == 33.33
        assert rate["monthly_consumption"] == 144.33

    def test_product_consumption_needs_two_orders(self):
        rate = calculate_product_consumption([make_order(1, 2024, {"Bob 35": 100})], "Bob 35")
        assert rate == {"weekly_consumption": 0.0, "monthly_consumption": 0.0}


class TestNextProductPrediction:

    def test_returns_closest_with_relative_weeks(self):
        orders = [
            make_order(1, 2024, {"Bob 35": 100, "50x70": 40}),
            make_order(11, 2024, {"Bob 35": 130}),
        ]
        closest = get_next_product_prediction(orders, NOW)

        assert closest.product_name == "50x70"
        assert closest.next_order_prediction == WeekYear(week=51, year=2023)
        assert closest.weeks_until_next_order == -12

    def test_none_without_products(self):
        assert get_next_product_prediction([make_order(1, 2024, lines=None, total=5)], NOW) is None


class TestWeekStatus:
    """Current week for NOW is 11/2024."""

    def test_overdue(self):
        status = get_week_status(WeekYear(week=10, year=2024), NOW)
        assert status.kind == "overdue"
        assert status.weeks_until == -1
        assert status.label == "overdue by 1 week"

    def test_overdue_across_year(self):
        status = get_week_status(WeekYear(week=50, year=2023), NOW)
        assert status.weeks_until == -13
        assert status.label == "overdue by 13 weeks"

    def test_this_week(self):
        status = get_week_status(WeekYear(week=11, year=2024), NOW)
        assert status.kind == "due_soon"
        assert status.label == "this week"
        assert status.weeks_until == 0

    @pytest.mark.parametrize("week,label", [(12, "in 1 week"), (13, "in 2 weeks")])
    def test_due_soon(self, week, label):
        status = get_week_status(WeekYear(week=week, year=2024), NOW)
        assert status.kind == "due_soon"
        assert status.label == label

    def test_upcoming(self):
        status = get_week_status(WeekYear(week=14, year=2024), NOW)
        assert status.kind == "upcoming"
        assert status.label == "in 3 weeks"
        assert status.weeks_until == 3

    def test_recomputed_from_now(self):
        target = WeekYear(week=14, year=2024)
        later = datetime(2024, 4, 10)

        assert get_week_status(target, NOW).kind == "upcoming"
        assert get_week_status(target, later).kind == "overdue"
