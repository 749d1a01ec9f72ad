"""
Record normalization and data quality checks.

Raw records arrive from the client cache or import sources with arbitrary
shapes: camelCase or snake_case keys, numbers as strings, missing optional
fields. ``normalize_product`` / ``normalize_history`` turn them into fully
defaulted records or raise ``ValidationError`` before anything is written.
``PricingDataValidator`` flags data-quality problems on records that are
already well-formed.
"""

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Type, TypeVar
from zoneinfo import ZoneInfo

from config.settings import settings
from models.base import ProductCategory
from models.product import NUMERIC_PRECISION
from models.records import (
    DATE_FIELDS, NUMERIC_FIELDS, OPTIONAL_STRING_FIELDS, SPECIAL_FIELDS, STRING_FIELDS,
    PricedRecord, PriceHistoryRecord, ProductRecord, to_camel, utcnow
)
from utils.exceptions import ValidationError
from utils.logging import get_logger


R = TypeVar("R", bound=PricedRecord)

DEFAULT_CATEGORY = ProductCategory.ACCESSORY.value
DEFAULT_KARAT = "18K"
DEFAULT_GOLD_COLOR = "黄金"

# 클라이언트 캐시가 저장하던 zh-CN 로케일 시각 포맷 (클라이언트 현지 시각)
_LOCALE_DATE_FORMATS = ("%Y/%m/%d %H:%M:%S", "%Y/%m/%d")


@dataclass
class ValidationResult:
    """검증 결과"""
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str):
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str):
        self.warnings.append(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.is_valid, "errors": self.errors, "warnings": self.warnings}


def _lookup(raw: Mapping[str, Any], name: str) -> Any:
    """snake_case 또는 camelCase 키로 값 조회"""
    if name in raw:
        return raw[name]
    return raw.get(to_camel(name))


def _to_number(value: Any, name: str, record_id: Optional[str]) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be numeric, got bool", field=name, record_id=record_id)

    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(Decimal(value.strip()))
        except InvalidOperation:
            raise ValidationError(f"{name} is not numeric: {value!r}", field=name, record_id=record_id)
    else:
        raise ValidationError(
            f"{name} must be numeric, got {type(value).__name__}", field=name, record_id=record_id
        )

    if not math.isfinite(number):
        raise ValidationError(f"{name} is not finite: {value!r}", field=name, record_id=record_id)
    return number


def _quantize(name: str, value: Optional[float], record_id: Optional[str]) -> Optional[float]:
    """컬럼 scale 로 반올림 (저장값과 비교값을 일치시킴)"""
    if value is None or name not in NUMERIC_PRECISION:
        return value
    scale = NUMERIC_PRECISION[name][1]
    try:
        return float(Decimal(repr(value)).quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise ValidationError(f"{name} is out of range: {value!r}", field=name, record_id=record_id)


def _to_datetime(value: Any, name: str, record_id: Optional[str]) -> Optional[datetime]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        parsed = None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            for fmt in _LOCALE_DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt).replace(tzinfo=client_timezone())
                    break
                except ValueError:
                    continue
        if parsed is None:
            raise ValidationError(f"{name} is not a date: {value!r}", field=name, record_id=record_id)
    else:
        raise ValidationError(
            f"{name} must be a date, got {type(value).__name__}", field=name, record_id=record_id
        )

    return ensure_utc(parsed)


def client_timezone() -> ZoneInfo:
    """로케일 형식 시각에 적용할 시간대"""
    return ZoneInfo(settings.sync.client_timezone)


def ensure_utc(value: datetime) -> datetime:
    """naive 시각은 UTC 로 간주"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_identity(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def check_id_length(record_id: str, name: str = "id") -> None:
    """ID 컬럼 폭을 넘는 ID 는 저장 전에 거부"""
    max_length = settings.sync.id_max_length
    if len(record_id) > max_length:
        raise ValidationError(
            f"{name} length {len(record_id)} exceeds column width {max_length}",
            field=name,
            record_id=record_id
        )


def _normalize_priced(raw: Mapping[str, Any], record_cls: Type[R],
                      now: Optional[Callable[[], datetime]] = None) -> R:
    if not isinstance(raw, Mapping):
        raise ValidationError(f"record must be a mapping, got {type(raw).__name__}")

    now = now or utcnow
    record_id = _to_identity(_lookup(raw, "id"))
    product_code = _to_identity(_lookup(raw, "product_code"))

    if not record_id:
        raise ValidationError("record is missing id", field="id", record_id=product_code or None)
    if not product_code:
        raise ValidationError("record is missing productCode", field="product_code", record_id=record_id)
    check_id_length(record_id)

    values: Dict[str, Any] = {
        "id": record_id,
        "product_code": product_code,
        "user_id": _to_identity(_lookup(raw, "user_id")),
    }

    for name in NUMERIC_FIELDS:
        number = _to_number(_lookup(raw, name), name, record_id)
        values[name] = 0.0 if number is None else _quantize(name, number, record_id)

    for name in SPECIAL_FIELDS:
        values[name] = _quantize(name, _to_number(_lookup(raw, name), name, record_id), record_id)

    for name in STRING_FIELDS:
        value = _lookup(raw, name)
        values[name] = "" if value is None else str(value)
    values["category"] = values["category"] or DEFAULT_CATEGORY

    for name in OPTIONAL_STRING_FIELDS:
        value = _lookup(raw, name)
        values[name] = str(value) if value else None

    values["karat"] = str(_lookup(raw, "karat") or DEFAULT_KARAT)
    values["gold_color"] = str(_lookup(raw, "gold_color") or DEFAULT_GOLD_COLOR)

    for name in DATE_FIELDS:
        values[name] = _to_datetime(_lookup(raw, name), name, record_id) or now()

    created_at = _to_datetime(_lookup(raw, "created_at"), "created_at", record_id)
    values["created_at"] = created_at

    if record_cls is PriceHistoryRecord:
        product_id = _to_identity(_lookup(raw, "product_id"))
        if not product_id:
            raise ValidationError("history record is missing productId", field="product_id", record_id=record_id)
        check_id_length(product_id, "product_id")
        values["product_id"] = product_id
    elif record_cls is ProductRecord:
        values["updated_at"] = _to_datetime(_lookup(raw, "updated_at"), "updated_at", record_id)

    return record_cls(**values)


def normalize_product(raw: Mapping[str, Any], now: Optional[Callable[[], datetime]] = None) -> ProductRecord:
    """원시 상품 데이터를 기본값이 채워진 ProductRecord 로 변환"""
    if isinstance(raw, PricedRecord):
        raw = asdict(raw)
    return _normalize_priced(raw, ProductRecord, now)


def normalize_history(raw: Mapping[str, Any], now: Optional[Callable[[], datetime]] = None) -> PriceHistoryRecord:
    """원시 이력 데이터를 기본값이 채워진 PriceHistoryRecord 로 변환"""
    if isinstance(raw, PricedRecord):
        raw = asdict(raw)
    return _normalize_priced(raw, PriceHistoryRecord, now)


def missing_fields(raw: Any, names: Iterable[str]) -> List[str]:
    """원시 레코드에 값이 없는 필드 (정규화 때 기본값이 채워지는 필드)"""
    if isinstance(raw, PricedRecord):
        return []
    return [name for name in names if _lookup(raw, name) in (None, "")]


def raw_record_id(raw: Any) -> Optional[str]:
    """정규화 전 레코드에서 ID 추출 (리포트용)"""
    if isinstance(raw, PricedRecord):
        return raw.id or None
    if isinstance(raw, Mapping):
        return _to_identity(_lookup(raw, "id")) or None
    return None


def _precision_issues(name: str, value: Optional[float]) -> List[str]:
    if value is None or name not in NUMERIC_PRECISION:
        return []

    precision, scale = NUMERIC_PRECISION[name]
    issues = []
    digits = Decimal(repr(value))
    exponent = digits.as_tuple().exponent

    decimal_places = max(0, -exponent)
    if decimal_places > scale:
        issues.append(f"{name}: {decimal_places} decimal places exceeds scale {scale}")

    integer_digits = len(str(abs(int(digits))))
    if integer_digits > precision - scale:
        issues.append(f"{name}: {integer_digits} integer digits exceeds limit {precision - scale}")
    return issues


class PricingDataValidator:
    """가격 데이터 품질 검증"""

    def __init__(self):
        self.logger = get_logger("pricing_validator")

    def validate_price_inputs(self, weight: float, labor_cost: float, gold_price: float) -> ValidationResult:
        """계산 입력값 검증 (계산기 자체는 거부하지 않음)"""
        result = ValidationResult()

        if weight <= 0:
            result.add_error(f"weight must be greater than 0, got {weight}")
        if labor_cost < 0:
            result.add_error(f"labor_cost cannot be negative, got {labor_cost}")
        if gold_price <= 0:
            result.add_error(f"gold_price must be greater than 0, got {gold_price}")

        return result

    def _validate_prices(self, record: PricedRecord, result: ValidationResult) -> None:
        if record.wholesale_price < 0:
            result.add_error(f"wholesale_price cannot be negative, got {record.wholesale_price}")
        if record.retail_price < 0:
            result.add_error(f"retail_price cannot be negative, got {record.retail_price}")

        # 정상적인 경우 도매가 < 소매가
        if 0 < record.retail_price <= record.wholesale_price:
            result.add_warning(
                f"wholesale_price ({record.wholesale_price}) should be below retail_price ({record.retail_price})"
            )

    def validate_product(self, record: ProductRecord) -> ValidationResult:
        """상품 레코드 검증"""
        result = ValidationResult()

        for name in ("id", "product_code", "product_name", "category", "karat", "gold_color"):
            if not getattr(record, name):
                result.add_error(f"missing {name}")

        inputs = self.validate_price_inputs(record.weight, record.labor_cost, record.gold_price)
        for message in inputs.errors:
            result.add_error(message)

        self._validate_prices(record, result)

        for name in NUMERIC_FIELDS + SPECIAL_FIELDS:
            for message in _precision_issues(name, getattr(record, name)):
                result.add_error(message)

        return result

    def validate_history(self, record: PriceHistoryRecord) -> ValidationResult:
        """가격 이력 레코드 검증"""
        result = ValidationResult()

        for name in ("id", "product_id", "product_code"):
            if not getattr(record, name):
                result.add_error(f"missing {name}")

        if record.gold_price <= 0:
            result.add_error(f"gold_price must be greater than 0, got {record.gold_price}")
        self._validate_prices(record, result)

        for name in ("gold_price", "wholesale_price", "retail_price"):
            for message in _precision_issues(name, getattr(record, name)):
                result.add_error(message)

        return result

    def sample_issues(self, records: List[PricedRecord], sample_size: Optional[int] = None) -> List[Dict[str, Any]]:
        """앞에서부터 sample_size 개 레코드의 품질 이슈 수집"""
        sample_size = sample_size or settings.sync.quality_sample_size
        issues = []

        for record in records[:sample_size]:
            if isinstance(record, PriceHistoryRecord):
                result = self.validate_history(record)
            else:
                result = self.validate_product(record)

            if not result.is_valid or result.warnings:
                issues.append({
                    "id": record.id,
                    "product_code": record.product_code,
                    "errors": result.errors,
                    "warnings": result.warnings,
                })

        if issues:
            self.logger.warning(f"Data quality issues found in {len(issues)} of {min(sample_size, len(records))} sampled records")
        return issues


# 전역 인스턴스
data_validator = PricingDataValidator()
