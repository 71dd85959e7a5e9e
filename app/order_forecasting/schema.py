# app/order_forecasting/schema.py
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Annotated, Dict, List, Literal, Optional, Union


class WeekYear(BaseModel):
    week: int
    year: int


# ────────────────────── PRODUCT LINES (tagged by category) ──────────────────────

class _ProductLineBase(BaseModel):
    id: Optional[str] = None
    name: str
    quantity: float = Field(default=0, ge=0)
    unit: str = "unité"


class PaperProduct(_ProductLineBase):
    category: Literal["papier_thermo", "papier_paraffine"]
    color: Optional[str] = None  # single colour on older orders
    colors: List[str] = Field(default_factory=list)


class PotProduct(_ProductLineBase):
    category: Literal["pots"]
    colors: List[str] = Field(default_factory=list)
    couv_at: Optional[str] = Field(default=None, description="Lid reference")
    impression_colors: List[str] = Field(default_factory=list)


class BagProduct(_ProductLineBase):
    category: Literal["bretelles", "cabas_kraft_pp", "cabas_kraft_pt", "reutilisable", "isotherme"]
    colors: List[str] = Field(default_factory=list)


class PromoProduct(_ProductLineBase):
    category: Literal["objet_pub"]


ProductLine = Annotated[
    Union[PaperProduct, PotProduct, BagProduct, PromoProduct],
    Field(discriminator="category"),
]


# ────────────────────── CLIENTS & ORDERS ──────────────────────

class Client(BaseModel):
    id: str
    last_name: str = ""
    first_name: str = ""
    company_name: str = ""
    email: str = ""
    phone: str = ""
    postal_code: str = ""
    street: str = ""
    city: str = ""

    @property
    def display_name(self) -> str:
        return self.company_name or self.last_name


class Order(BaseModel):
    id: Optional[str] = None
    client_id: str
    order_number: Optional[str] = None
    week_number: int = Field(..., ge=1, le=52)
    year: int
    delivery_week: Optional[int] = Field(default=None, ge=1, le=52)
    delivery_year: Optional[int] = None
    day_of_week: Optional[str] = None
    closure_days: List[str] = Field(default_factory=list)
    delivery_instructions: Optional[str] = None
    products: Optional[List[ProductLine]] = None  # absent on legacy orders
    total: float = 0


# ────────────────────── ENGINE OUTPUTS ──────────────────────

class ClientStats(BaseModel):
    total_orders: int = 0
    average_weeks_between_orders: float = 0
    weekly_consumption: float = 0
    monthly_consumption: float = 0
    last_order_duration: float = 0
    next_order_prediction: Optional[WeekYear] = None
    last_order: Optional[WeekYear] = None
    weeks_until_next_order: float = 0


class ProductPrediction(BaseModel):
    product_name: str
    product_category: str
    next_order_prediction: WeekYear
    weekly_consumption: float
    weeks_until_next_order: float


StatusKind = Literal["overdue", "due_soon", "upcoming"]


class WeekStatus(BaseModel):
    kind: StatusKind
    label: str
    weeks_until: int


# ────────────────────── DASHBOARD ──────────────────────

class ClientForecast(BaseModel):
    client: Client
    stats: ClientStats
    status: WeekStatus


class ClientForecasts(BaseModel):
    overdue: List[ClientForecast] = Field(default_factory=list)
    upcoming: List[ClientForecast] = Field(default_factory=list)


class ProductDue(BaseModel):
    product_name: str
    product_category: str
    next_order_prediction: WeekYear
    weeks: int = Field(..., description="Weeks overdue or weeks until, depending on the list")


class ClientProducts(BaseModel):
    client: Client
    products: List[ProductDue]


class InactiveClient(BaseModel):
    client: Client
    weeks_since_last_order: int
    last_order: WeekYear
    total_orders: int


NotificationType = Literal["overdue", "upcoming", "inactive"]
PriorityType = Literal["high", "medium", "low"]


class Notification(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: str
    client_id: str
    client_name: str
    product_name: Optional[str] = None
    priority: PriorityType
    created_at: datetime
    read: bool = False
    action_url: Optional[str] = None


class NotificationSummary(BaseModel):
    total: int
    unread: int
    by_type: Dict[str, int]
    by_priority: Dict[str, int]
    high_priority_unread: List[Notification]


class MonthlyConsumption(BaseModel):
    year: int
    month: int
    products: Dict[str, float]
    total: float


# ────────────────────── REQUESTS / RESPONSES ──────────────────────

class OrdersRequest(BaseModel):
    orders: List[Order]
    now: Optional[datetime] = None


class StatusRequest(BaseModel):
    week: int
    year: int
    now: Optional[datetime] = None


class DashboardRequest(BaseModel):
    clients: List[Client]
    orders: List[Order]
    now: Optional[datetime] = None


class DashboardResponse(BaseModel):
    current_week: WeekYear
    client_forecasts: ClientForecasts
    overdue_products: List[ClientProducts]
    upcoming_products: List[ClientProducts]
    inactive_clients: List[InactiveClient]
    recent_orders: List[Order]
    notifications: List[Notification]
    summary: NotificationSummary
    generated_on: str


class ClientImportResult(BaseModel):
    client_id: str
    stats: ClientStats
    product_predictions: List[ProductPrediction]


class ImportResponse(BaseModel):
    total_orders: int
    total_clients: int
    clients: List[ClientImportResult]
    generated_on: str
    message: str
