"""
Current-state product ledger.

One live product per (category, product_code). Every upsert replaces the
live row with a freshly identified record, and when a history log is
attached, appends a snapshot of the new row to it.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import uuid4

from models.records import (
    IDENTITY_FIELDS, PricedRecord, PriceHistoryRecord, ProductFilter, ProductRecord, utcnow
)
from ledger.history import PriceHistoryLog
from utils.exceptions import ValidationError
from utils.logging import get_logger
from utils.validation import normalize_product


logger = get_logger(__name__)

LedgerKey = Tuple[str, str]


def new_product_id() -> str:
    return str(uuid4())


class ProductLedger:
    """상품 코드별 현재 상품 장부"""

    def __init__(self, user_id: str, history: Optional[PriceHistoryLog] = None,
                 id_factory: Optional[Callable[[], str]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.user_id = user_id
        self.history = history
        self._id_factory = id_factory or new_product_id
        self._clock = clock or utcnow
        self._products: Dict[LedgerKey, ProductRecord] = {}

    def __len__(self) -> int:
        return len(self._products)

    @staticmethod
    def key_of(record: PricedRecord) -> LedgerKey:
        return record.category, record.product_code

    def build(self, category: str, product_code: str, fields: Mapping[str, Any]) -> ProductRecord:
        """새 ID 와 현재 시각으로 정규화된 레코드 생성 (장부에는 넣지 않음)"""
        if isinstance(fields, PricedRecord):
            fields = fields.content()

        raw = {key: value for key, value in fields.items() if key not in IDENTITY_FIELDS}
        now = self._clock()
        raw.update({
            "id": self._id_factory(),
            "user_id": self.user_id,
            "category": category,
            "product_code": product_code,
            "timestamp": now,
            "created_at": now,
            "updated_at": now,
        })
        return normalize_product(raw, now=self._clock)

    def put(self, record: ProductRecord) -> ProductRecord:
        """같은 (category, product_code) 의 기존 상품을 교체하고 이력 추가"""
        if not record.product_code:
            raise ValidationError("product is missing productCode", field="product_code", record_id=record.id)

        key = self.key_of(record)
        previous = self._products.get(key)
        if previous is not None:
            logger.debug(f"Replacing product {key[1]} ({previous.id} -> {record.id})")

        self._products[key] = record
        if self.history is not None:
            self.history.append(PriceHistoryRecord.from_product(record, self.history.next_id()))
        return record

    def upsert_by_code(self, category: str, product_code: str, fields: Mapping[str, Any]) -> ProductRecord:
        """상품 코드 기준 교체 (병합 아님)"""
        return self.put(self.build(category, product_code, fields))

    def load(self, records: Iterable[ProductRecord]) -> int:
        """저장된 레코드를 ID 그대로 적재 (이력 추가 없음)"""
        count = 0
        for record in records:
            key = self.key_of(record)
            if key in self._products:
                logger.warning(f"Duplicate live product for code {key[1]}, keeping {record.id}")
            self._products[key] = record
            count += 1
        return count

    def get(self, product_id: str) -> Optional[ProductRecord]:
        for record in self._products.values():
            if record.id == product_id:
                return record
        return None

    def find_by_code(self, product_code: str, category: Optional[str] = None) -> Optional[ProductRecord]:
        if category is not None:
            return self._products.get((category, product_code))
        for record in self._products.values():
            if record.product_code == product_code:
                return record
        return None

    def batch_delete_by_ids(self, product_ids: Iterable[str]) -> int:
        """상품 삭제 (연결된 이력도 삭제)"""
        wanted = set(product_ids)
        doomed = [key for key, record in self._products.items() if record.id in wanted]

        for key in doomed:
            record = self._products.pop(key)
            if self.history is not None:
                self.history.delete_by_product_id(record.id, self.user_id)
        return len(doomed)

    def delete_by_id(self, product_id: str) -> bool:
        return self.batch_delete_by_ids([product_id]) == 1

    def query(self, filters: Optional[ProductFilter] = None,
              skip: int = 0, limit: int = 100) -> List[ProductRecord]:
        """조건 조회 (product_code 오름차순)"""
        filters = filters or ProductFilter()
        matched = [record for record in self._products.values() if filters.matches(record)]
        matched.sort(key=lambda record: (record.product_code, record.id))
        return matched[skip:skip + limit]

    def records(self) -> List[ProductRecord]:
        return list(self._products.values())
