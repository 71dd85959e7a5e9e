# config.py
from pathlib import Path
from dotenv import load_dotenv
import os


BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")

class Settings:
    APP_TITLE: str = os.getenv("APP_TITLE", "Client Reorder Forecasting")
    API_HOST: str = os.getenv("API_HOST", "127.0.0.1")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    MAX_UPLOAD_SIZE_MB: int = int(os.getenv("MAX_UPLOAD_SIZE_MB", "10"))


class ForecastConfig:

# ────────────────────── WEEK AXIS ──────────────────────
    # Linear week axis: year * 52 + week. Not ISO weeks.
    WEEKS_PER_YEAR = 52
    WEEKS_PER_MONTH = 4.33

# ────────────────────── REORDER HEURISTIC ──────────────────────
    # Reorder cycle assumed when a client has a single order (6 months)
    DEFAULT_CYCLE_WEEKS: int = int(os.getenv("FORECAST_DEFAULT_CYCLE_WEEKS", "26"))
    # Lead time subtracted from the weeks of stock an order covers
    SAFETY_BUFFER_WEEKS: int = int(os.getenv("FORECAST_SAFETY_BUFFER_WEEKS", "12"))

# ────────────────────── STATUS & ALERT THRESHOLDS ──────────────────────
    DUE_SOON_WEEKS = 2
    UPCOMING_ALERT_WEEKS = 3
    INACTIVE_WEEKS = 8
    INACTIVE_HIGH_WEEKS = 12
    OVERDUE_HIGH_WEEKS = 4
    OVERDUE_MEDIUM_WEEKS = 2
    RECENT_ORDER_WEEKS = 4


class OrderConfig:

    # ────────────────────── ORDER IMPORT COLUMN NAMES ──────────────────────
    # One row per order line; order-level fields repeat on every line
    COL_ORDER_ID        = "order_id"
    COL_CLIENT_ID       = "client_id"
    COL_WEEK_NUMBER     = "week_number"
    COL_YEAR            = "year"
    COL_TOTAL           = "total"
    COL_CATEGORY        = "category"
    COL_PRODUCT_NAME    = "product_name"
    COL_QUANTITY        = "quantity"
    COL_UNIT            = "unit"

    REQUIRED_COLUMNS = [
        COL_ORDER_ID,
        COL_CLIENT_ID,
        COL_WEEK_NUMBER,
        COL_YEAR,
    ]

    PRODUCT_COLUMNS = [
        COL_CATEGORY,
        COL_PRODUCT_NAME,
        COL_QUANTITY,
    ]
