"""
Plain record types used by the pricing and reconciliation core.

Records always hold numbers as ``float`` and dates as timezone-aware UTC
``datetime``. Conversion from database decimals or client JSON happens at
the boundary (repositories and ``utils.validation``).
"""

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


NUMERIC_FIELDS = (
    "weight", "labor_cost", "gold_price", "wholesale_price", "retail_price",
    "accessory_cost", "stone_cost", "plating_cost", "mold_cost", "commission",
)

SPECIAL_FIELDS = (
    "special_material_loss", "special_material_cost", "special_profit_margin",
    "special_labor_factor_retail", "special_labor_factor_wholesale",
)

STRING_FIELDS = (
    "category", "sub_category", "product_name", "specification", "supplier_code",
)

OPTIONAL_STRING_FIELDS = ("order_channel", "shape")

DATE_FIELDS = (
    "labor_cost_date", "accessory_cost_date", "stone_cost_date",
    "plating_cost_date", "mold_cost_date", "commission_date", "timestamp",
)

# 동기화 비교/저장 대상에서 제외되는 필드
IDENTITY_FIELDS = ("id", "user_id", "created_at", "updated_at")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_camel(name: str) -> str:
    """snake_case -> camelCase (클라이언트 페이로드 키)"""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


@dataclass
class PricedRecord:
    """상품/이력 공통 필드"""

    id: str = ""
    user_id: str = ""
    category: str = ""
    sub_category: str = ""
    product_code: str = ""
    product_name: str = ""
    specification: str = ""

    weight: float = 0.0
    labor_cost: float = 0.0
    karat: str = "18K"
    gold_color: str = "黄金"

    gold_price: float = 0.0
    wholesale_price: float = 0.0
    retail_price: float = 0.0

    accessory_cost: float = 0.0
    stone_cost: float = 0.0
    plating_cost: float = 0.0
    mold_cost: float = 0.0
    commission: float = 0.0
    supplier_code: str = ""
    order_channel: Optional[str] = None
    shape: Optional[str] = None

    special_material_loss: Optional[float] = None
    special_material_cost: Optional[float] = None
    special_profit_margin: Optional[float] = None
    special_labor_factor_retail: Optional[float] = None
    special_labor_factor_wholesale: Optional[float] = None

    labor_cost_date: datetime = field(default_factory=utcnow)
    accessory_cost_date: datetime = field(default_factory=utcnow)
    stone_cost_date: datetime = field(default_factory=utcnow)
    plating_cost_date: datetime = field(default_factory=utcnow)
    mold_cost_date: datetime = field(default_factory=utcnow)
    commission_date: datetime = field(default_factory=utcnow)
    timestamp: datetime = field(default_factory=utcnow)

    created_at: Optional[datetime] = None

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]

    def content(self) -> Dict[str, Any]:
        """식별 필드를 제외한 내용 (저장/비교용)"""
        data = asdict(self)
        for name in IDENTITY_FIELDS:
            data.pop(name, None)
        return data

    def to_payload(self) -> Dict[str, Any]:
        """JSON 직렬화 가능한 camelCase 딕셔너리"""
        payload = {}
        for key, value in asdict(self).items():
            if isinstance(value, datetime):
                value = value.isoformat()
            payload[to_camel(key)] = value
        return payload


@dataclass
class ProductRecord(PricedRecord):
    """상품 코드별 현재 상태"""

    updated_at: Optional[datetime] = None


@dataclass
class PriceHistoryRecord(PricedRecord):
    """가격 계산 스냅샷 (추가 전용)"""

    product_id: str = ""

    @classmethod
    def from_product(cls, product: ProductRecord, history_id: str) -> "PriceHistoryRecord":
        data = asdict(product)
        data.pop("updated_at", None)
        data["id"] = history_id
        data["product_id"] = product.id
        data["created_at"] = None
        return cls(**data)


@dataclass
class CurrentUser:
    """인증 계층이 넘겨주는 현재 사용자"""

    id: str
    email: str = ""
    name: str = ""


@dataclass
class ProductFilter:
    """상품 조회 조건 (product_code 는 대소문자 구분 부분 일치)"""

    category: Optional[str] = None
    sub_category: Optional[str] = None
    product_code: Optional[str] = None
    karat: Optional[str] = None
    gold_color: Optional[str] = None

    def matches(self, record: "ProductRecord") -> bool:
        if self.category is not None and record.category != self.category:
            return False
        if self.sub_category is not None and record.sub_category != self.sub_category:
            return False
        if self.product_code is not None and self.product_code not in record.product_code:
            return False
        if self.karat is not None and record.karat != self.karat:
            return False
        if self.gold_color is not None and record.gold_color != self.gold_color:
            return False
        return True


@dataclass
class ConfigEntry:
    """사용자 설정 항목"""

    key: str
    value: Any
    updated_at: Optional[datetime] = None


@dataclass
class LocalSnapshot:
    """
    클라이언트 측 작업 데이터 스냅샷

    products / price_history 항목은 ``PricedRecord`` 이거나 정규화 전 원시
    딕셔너리일 수 있다. configs 는 {key: value} 형태.
    """

    products: List[Any] = field(default_factory=list)
    price_history: List[Any] = field(default_factory=list)
    configs: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        def encode(item: Any) -> Any:
            return item.to_payload() if isinstance(item, PricedRecord) else item

        return {
            "products": [encode(item) for item in self.products],
            "priceHistory": [encode(item) for item in self.price_history],
            "configs": dict(self.configs),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "LocalSnapshot":
        return cls(
            products=list(payload.get("products") or []),
            price_history=list(payload.get("priceHistory") or []),
            configs=dict(payload.get("configs") or {}),
        )
