"""
Per-entity repositories over the relational store.

Every query is scoped by ``user_id``. Rows are converted to plain records on
the way out (``Decimal`` -> ``float``, naive timestamps -> UTC) so that the
pricing and reconciliation code never sees database types.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from models.app_config import AppConfig
from models.price_history import PriceHistory
from models.product import Product
from models.records import (
    ConfigEntry, PricedRecord, PriceHistoryRecord, ProductFilter, ProductRecord, utcnow
)
from utils.logging import get_logger
from utils.validation import check_id_length, ensure_utc


logger = get_logger(__name__)

R = TypeVar("R", bound=PricedRecord)


def _from_row(row: Any, record_cls: Type[R]) -> R:
    values: Dict[str, Any] = {}
    for name in record_cls.field_names():
        value = getattr(row, name, None)
        if isinstance(value, Decimal):
            value = float(value)
        elif isinstance(value, datetime):
            value = ensure_utc(value)
        values[name] = value
    return record_cls(**values)


def _to_columns(record: PricedRecord) -> Dict[str, Any]:
    columns = record.content()
    for name, value in columns.items():
        if isinstance(value, float):
            columns[name] = Decimal(repr(value))
        elif isinstance(value, datetime):
            columns[name] = ensure_utc(value)
    return columns


class ProductRepository:
    """상품 저장소"""

    def __init__(self, session: Session):
        self.session = session

    def list(self, user_id: str, filters: Optional[ProductFilter] = None,
             skip: int = 0, limit: int = 100) -> List[ProductRecord]:
        """상품 목록 조회 (product_code 오름차순)"""
        filters = filters or ProductFilter()
        stmt = select(Product).where(Product.user_id == user_id)

        if filters.category is not None:
            stmt = stmt.where(Product.category == filters.category)
        if filters.sub_category is not None:
            stmt = stmt.where(Product.sub_category == filters.sub_category)
        if filters.product_code is not None:
            stmt = stmt.where(Product.product_code.contains(filters.product_code, autoescape=True))
        if filters.karat is not None:
            stmt = stmt.where(Product.karat == filters.karat)
        if filters.gold_color is not None:
            stmt = stmt.where(Product.gold_color == filters.gold_color)

        stmt = stmt.order_by(Product.product_code, Product.id).offset(skip).limit(limit)
        return [_from_row(row, ProductRecord) for row in self.session.scalars(stmt)]

    def _get_row(self, product_id: str, user_id: str) -> Optional[Product]:
        stmt = select(Product).where(Product.id == product_id, Product.user_id == user_id)
        return self.session.scalars(stmt).first()

    def get_by_id(self, product_id: str, user_id: str) -> Optional[ProductRecord]:
        row = self._get_row(product_id, user_id)
        return _from_row(row, ProductRecord) if row else None

    def get_by_code(self, category: str, product_code: str, user_id: str) -> Optional[ProductRecord]:
        """(category, product_code) 자연 키로 조회"""
        stmt = select(Product).where(
            Product.category == category,
            Product.product_code == product_code,
            Product.user_id == user_id
        )
        row = self.session.scalars(stmt).first()
        return _from_row(row, ProductRecord) if row else None

    def create(self, user_id: str, record: ProductRecord) -> ProductRecord:
        """호출자가 지정한 ID 로 상품 생성"""
        check_id_length(record.id)
        row = Product(id=record.id, user_id=user_id, **_to_columns(record))
        self.session.add(row)
        self.session.flush()
        self.session.refresh(row)
        return _from_row(row, ProductRecord)

    def update(self, product_id: str, user_id: str, record: ProductRecord) -> Optional[ProductRecord]:
        """식별 필드를 제외한 전체 필드 덮어쓰기"""
        row = self._get_row(product_id, user_id)
        if row is None:
            return None

        for name, value in _to_columns(record).items():
            setattr(row, name, value)
        row.updated_at = utcnow()
        self.session.flush()
        self.session.refresh(row)
        return _from_row(row, ProductRecord)

    def delete(self, product_id: str, user_id: str) -> bool:
        """상품 삭제 (이력 함께 삭제)"""
        return self.delete_many([product_id], user_id) > 0

    def delete_many(self, product_ids: Iterable[str], user_id: str) -> int:
        product_ids = list(product_ids)
        if not product_ids:
            return 0

        self.session.execute(
            delete(PriceHistory).where(
                PriceHistory.user_id == user_id,
                PriceHistory.product_id.in_(product_ids)
            )
        )
        result = self.session.execute(
            delete(Product).where(Product.user_id == user_id, Product.id.in_(product_ids))
        )
        logger.debug(f"Deleted {result.rowcount} products with their history for user {user_id}")
        return result.rowcount or 0

    def delete_all(self, user_id: str) -> int:
        result = self.session.execute(delete(Product).where(Product.user_id == user_id))
        return result.rowcount or 0


class PriceHistoryRepository:
    """가격 이력 저장소 (추가 전용, 수정 없음)"""

    def __init__(self, session: Session):
        self.session = session

    def list(self, user_id: str, product_id: Optional[str] = None,
             skip: int = 0, limit: int = 100) -> List[PriceHistoryRecord]:
        """가격 이력 조회 (최신순)"""
        stmt = select(PriceHistory).where(PriceHistory.user_id == user_id)
        if product_id is not None:
            stmt = stmt.where(PriceHistory.product_id == product_id)

        stmt = stmt.order_by(PriceHistory.timestamp.desc(), PriceHistory.id.desc()).offset(skip).limit(limit)
        return [_from_row(row, PriceHistoryRecord) for row in self.session.scalars(stmt)]

    def get_by_id(self, history_id: str, user_id: str) -> Optional[PriceHistoryRecord]:
        stmt = select(PriceHistory).where(PriceHistory.id == history_id, PriceHistory.user_id == user_id)
        row = self.session.scalars(stmt).first()
        return _from_row(row, PriceHistoryRecord) if row else None

    def create(self, user_id: str, record: PriceHistoryRecord) -> PriceHistoryRecord:
        check_id_length(record.id)
        check_id_length(record.product_id, "product_id")
        row = PriceHistory(id=record.id, user_id=user_id, **_to_columns(record))
        self.session.add(row)
        self.session.flush()
        self.session.refresh(row)
        return _from_row(row, PriceHistoryRecord)

    def delete(self, history_id: str, user_id: str) -> bool:
        result = self.session.execute(
            delete(PriceHistory).where(PriceHistory.id == history_id, PriceHistory.user_id == user_id)
        )
        return (result.rowcount or 0) > 0

    def delete_by_product_id(self, product_id: str, user_id: str) -> int:
        result = self.session.execute(
            delete(PriceHistory).where(
                PriceHistory.product_id == product_id,
                PriceHistory.user_id == user_id
            )
        )
        return result.rowcount or 0

    def delete_all(self, user_id: str) -> int:
        result = self.session.execute(delete(PriceHistory).where(PriceHistory.user_id == user_id))
        return result.rowcount or 0


class AppConfigRepository:
    """사용자 설정 저장소 ((user_id, config_key) 당 하나)"""

    def __init__(self, session: Session):
        self.session = session

    def _get_row(self, user_id: str, config_key: str) -> Optional[AppConfig]:
        stmt = select(AppConfig).where(AppConfig.user_id == user_id, AppConfig.config_key == config_key)
        return self.session.scalars(stmt).first()

    @staticmethod
    def _entry(row: AppConfig) -> ConfigEntry:
        updated_at = ensure_utc(row.updated_at) if row.updated_at else None
        return ConfigEntry(key=row.config_key, value=row.config_value, updated_at=updated_at)

    def set_config(self, user_id: str, config_key: str, config_value: Any) -> ConfigEntry:
        """설정 upsert"""
        row = self._get_row(user_id, config_key)
        if row is None:
            row = AppConfig(user_id=user_id, config_key=config_key, config_value=config_value)
            self.session.add(row)
        else:
            row.config_value = config_value
            row.updated_at = utcnow()

        self.session.flush()
        self.session.refresh(row)
        return self._entry(row)

    def get_config(self, user_id: str, config_key: str) -> Optional[ConfigEntry]:
        row = self._get_row(user_id, config_key)
        return self._entry(row) if row else None

    def get_all_configs(self, user_id: str) -> List[ConfigEntry]:
        stmt = select(AppConfig).where(AppConfig.user_id == user_id).order_by(AppConfig.config_key)
        return [self._entry(row) for row in self.session.scalars(stmt)]

    def delete_config(self, user_id: str, config_key: str) -> bool:
        result = self.session.execute(
            delete(AppConfig).where(AppConfig.user_id == user_id, AppConfig.config_key == config_key)
        )
        return (result.rowcount or 0) > 0

    def delete_all(self, user_id: str) -> int:
        result = self.session.execute(delete(AppConfig).where(AppConfig.user_id == user_id))
        return result.rowcount or 0
