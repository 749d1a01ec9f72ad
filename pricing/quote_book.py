"""
The user's local quoting workspace.

A ``QuoteBook`` ties together the coefficient store, the product ledger and
the price history log for one user. It is the "local" side handed to
reconciliation, and it can be parked in and restored from the Redis
snapshot cache between sessions.
"""

from dataclasses import dataclass, replace
from typing import Any, Iterable, List, Mapping, Optional

from ledger.history import PriceHistoryLog
from ledger.products import ProductLedger
from models.base import GoldColor
from models.records import LocalSnapshot, PriceHistoryRecord, ProductRecord, to_camel
from pricing.calculator import PriceQuote, detect_purity
from pricing.coefficients import CoefficientStore
from pricing.silver import is_silver, parse_silver_code
from utils.exceptions import ValidationError
from utils.logging import get_logger
from utils.validation import ValidationResult, data_validator, normalize_history, normalize_product


logger = get_logger(__name__)


@dataclass
class RecordedPrice:
    """가격 기록 결과"""

    product: ProductRecord
    history_entry: Optional[PriceHistoryRecord]
    quality: ValidationResult


def _pick(raw: Mapping[str, Any], name: str) -> Any:
    if name in raw:
        return raw[name]
    return raw.get(to_camel(name))


class QuoteBook:
    """사용자별 견적 작업 공간"""

    def __init__(self, user_id: str, coefficients: Optional[CoefficientStore] = None,
                 ledger: Optional[ProductLedger] = None,
                 history: Optional[PriceHistoryLog] = None):
        self.user_id = user_id
        self.coefficients = coefficients or CoefficientStore()
        self.history = history or PriceHistoryLog()
        self.ledger = ledger or ProductLedger(user_id, history=self.history)

    def _draft(self, product_input: Mapping[str, Any]) -> ProductRecord:
        product_code = str(_pick(product_input, "product_code") or "").strip()
        if not product_code:
            raise ValidationError("product input is missing productCode", field="product_code")

        fields = dict(product_input)
        if not _pick(fields, "karat"):
            karat, gold_color = detect_purity(product_code)
            fields["karat"] = karat
            fields.setdefault("gold_color", gold_color)

        if is_silver(_pick(fields, "karat")):
            if not _pick(fields, "gold_color"):
                fields["gold_color"] = GoldColor.SILVER.value
            if not _pick(fields, "supplier_code"):
                fields["supplier_code"] = parse_silver_code(product_code)[1]

        category = str(_pick(product_input, "category") or "")
        return self.ledger.build(category, product_code, fields)

    def quote(self, product_input: Mapping[str, Any]) -> PriceQuote:
        """저장 없이 현재 시세/계수로 가격만 계산"""
        return self.coefficients.quote(self._draft(product_input))

    def _record(self, draft: ProductRecord) -> RecordedPrice:
        market_price = self.coefficients.price_for(draft.karat)
        prices = self.coefficients.quote(draft)

        priced = replace(
            draft,
            gold_price=market_price,
            wholesale_price=prices.wholesale_price,
            retail_price=prices.retail_price,
        )
        product = self.ledger.put(priced)

        latest = self.history.query(self.user_id, product_id=product.id, limit=1)
        quality = data_validator.validate_product(product)
        for message in quality.errors:
            logger.warning(f"Data quality issue on {product.product_code}: {message}")

        return RecordedPrice(product=product, history_entry=latest[0] if latest else None, quality=quality)

    def record_price(self, product_input: Mapping[str, Any]) -> RecordedPrice:
        """가격 계산 후 장부 교체 및 이력 추가"""
        recorded = self._record(self._draft(product_input))
        self.coefficients.bump_data_version()
        return recorded

    def update_prices(self, product_ids: Iterable[str]) -> List[RecordedPrice]:
        """선택한 상품을 현재 시세/계수로 재계산"""
        results = []
        for product_id in product_ids:
            product = self.ledger.get(product_id)
            if product is None:
                logger.warning(f"Skipping price update for unknown product {product_id}")
                continue
            draft = self.ledger.build(product.category, product.product_code, product.content())
            results.append(self._record(draft))

        if results:
            self.coefficients.bump_data_version()
        logger.info(f"Updated prices for {len(results)} products at market price {self.coefficients.market_price}")
        return results

    def snapshot(self) -> LocalSnapshot:
        """동기화에 넘길 로컬 스냅샷"""
        return LocalSnapshot(
            products=self.ledger.records(),
            price_history=self.history.records(self.user_id),
            configs=self.coefficients.to_configs(),
        )

    def save(self, cache) -> bool:
        """스냅샷 캐시에 저장"""
        return cache.save_snapshot(self.user_id, self.snapshot().to_payload())

    @classmethod
    def from_snapshot(cls, user_id: str, snapshot: LocalSnapshot) -> "QuoteBook":
        """스냅샷에서 복원 (정규화 실패 레코드는 건너뜀)"""
        book = cls(user_id, coefficients=CoefficientStore.from_configs(snapshot.configs))

        products = []
        for raw in snapshot.products:
            try:
                product = normalize_product(raw)
                product.user_id = product.user_id or user_id
                products.append(product)
            except ValidationError as e:
                logger.warning(f"Dropping unreadable cached product: {e.message}")

        entries = []
        for raw in snapshot.price_history:
            try:
                entry = normalize_history(raw)
                entry.user_id = entry.user_id or user_id
                entries.append(entry)
            except ValidationError as e:
                logger.warning(f"Dropping unreadable cached price history: {e.message}")

        book.ledger.load(products)
        for entry in entries:
            if entry.id in book.history:
                logger.warning(f"Dropping duplicate cached price history {entry.id}")
                continue
            book.history.append(entry)
        return book

    @classmethod
    def load(cls, cache, user_id: str) -> Optional["QuoteBook"]:
        """스냅샷 캐시에서 복원 (없으면 None)"""
        payload = cache.load_snapshot(user_id)
        if payload is None:
            return None
        return cls.from_snapshot(user_id, LocalSnapshot.from_payload(payload))
