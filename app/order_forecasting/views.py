# app/order_forecasting/views.py
import io
import logging
from fastapi import APIRouter, HTTPException, File, UploadFile
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from config import Settings

# Local imports
from .schema import ClientImportResult, ClientStats, DashboardRequest, DashboardResponse
from .schema import ImportResponse, MonthlyConsumption, OrdersRequest, ProductPrediction
from .schema import StatusRequest, WeekStatus, WeekYear
from .service import calculate_client_stats
from .service import calculate_product_predictions
from .service import get_next_product_prediction
from .service import get_week_status
from .alerts import client_forecasts, generate_notifications, inactive_clients
from .alerts import monthly_consumption, orders_by_client, overdue_products
from .alerts import recent_orders, summarize_notifications, upcoming_products
from .utils import current_week, load_orders

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/order", tags=["Client Reorder Forecasting"])

MAX_UPLOAD_BYTES = Settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024


@router.post("/stats", response_model=ClientStats)
async def client_stats(request: OrdersRequest):
    return calculate_client_stats(request.orders)


@router.post("/products", response_model=List[ProductPrediction])
async def product_predictions(request: OrdersRequest):
    return calculate_product_predictions(request.orders)


@router.post("/next-product", response_model=Optional[ProductPrediction])
async def next_product(request: OrdersRequest):
    return get_next_product_prediction(request.orders, request.now)


@router.post("/status", response_model=WeekStatus)
async def week_status(request: StatusRequest):
    if not (1 <= request.week <= 52):
        raise HTTPException(status_code=400, detail="Week must be 1–52")
    return get_week_status(WeekYear(week=request.week, year=request.year), request.now)


@router.post("/consumption", response_model=List[MonthlyConsumption])
async def consumption(request: OrdersRequest):
    return monthly_consumption(request.orders)


@router.post("/dashboard", response_model=DashboardResponse)
async def dashboard(request: DashboardRequest):
    now = request.now or datetime.now()
    clients, orders = request.clients, request.orders

    notifications = generate_notifications(clients, orders, now)
    logger.info("Dashboard for %d clients / %d orders: %d notifications",
                len(clients), len(orders), len(notifications))

    return DashboardResponse(
        current_week=current_week(now),
        client_forecasts=client_forecasts(clients, orders, now),
        overdue_products=overdue_products(clients, orders, now),
        upcoming_products=upcoming_products(clients, orders, now),
        inactive_clients=inactive_clients(clients, orders, now),
        recent_orders=recent_orders(orders, now),
        notifications=notifications,
        summary=summarize_notifications(notifications),
        generated_on=now.strftime("%Y-%m-%d %H:%M:%S"),
    )


@router.post("/import", response_model=ImportResponse)
async def import_orders(file: UploadFile = File(...)):
    filename = file.filename or "unknown"
    if Path(filename).suffix.lower() != ".csv":
        raise HTTPException(status_code=400, detail="Only CSV files allowed")

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail=f"File too large (>{Settings.MAX_UPLOAD_SIZE_MB}MB)")

    try:
        orders = load_orders(io.BytesIO(content))
    except ValueError as e:
        logger.warning("Rejected order import %s: %s", filename, e)
        raise HTTPException(status_code=400, detail=f"Invalid order file: {e}")

    results = [
        ClientImportResult(
            client_id=client_id,
            stats=calculate_client_stats(client_orders),
            product_predictions=calculate_product_predictions(client_orders),
        )
        for client_id, client_orders in orders_by_client(orders).items()
    ]

    logger.info("Imported %d orders for %d clients from %s", len(orders), len(results), filename)

    return ImportResponse(
        total_orders=len(orders),
        total_clients=len(results),
        clients=results,
        generated_on=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        message=f"Predictions for {len(results)} clients from {filename}",
    )
