"""
QuoteBook 단위 테스트

견적 계산, 가격 기록, 스냅샷 저장/복원을 검증합니다.
"""
import pytest

from ledger.history import PriceHistoryLog
from ledger.products import ProductLedger
from models.records import LocalSnapshot
from pricing.coefficients import DATA_VERSION_KEY, GOLD_PRICE_KEY, CoefficientStore
from pricing.quote_book import QuoteBook
from utils.exceptions import ValidationError


USER_ID = "user-0001"


@pytest.fixture
def book(id_factory, clock):
    history = PriceHistoryLog(id_factory=id_factory("h"))
    ledger = ProductLedger(USER_ID, history=history, id_factory=id_factory("p"), clock=clock)
    return QuoteBook(USER_ID, coefficients=CoefficientStore(market_price=500), ledger=ledger, history=history)


def earring(**overrides):
    product_input = {
        "category": "耳环/耳逼",
        "productCode": "KEW001",
        "productName": "Hoop earring",
        "weight": 2,
        "laborCost": 100,
    }
    product_input.update(overrides)
    return product_input


@pytest.mark.unit
class TestQuote:
    """저장 없는 견적"""

    def test_quote_does_not_record(self, book):
        quote = book.quote(earring())
        assert quote.wholesale_price == 313.77
        assert quote.retail_price == 363.77
        assert len(book.ledger) == 0
        assert len(book.history) == 0

    def test_purity_detected_from_code(self, book):
        quote = book.quote(earring(productCode="KEW001/14K"))
        assert quote.wholesale_price == 260.32

    def test_explicit_karat_wins(self, book):
        quote = book.quote(earring(productCode="KEW001/14K", karat="18K"))
        assert quote.wholesale_price == 313.77

    def test_requires_product_code(self, book):
        with pytest.raises(ValidationError):
            book.quote(earring(productCode=" "))


@pytest.mark.unit
class TestRecordPrice:
    """가격 기록"""

    def test_record_price(self, book):
        recorded = book.record_price(earring())

        assert recorded.product.gold_price == 500
        assert recorded.product.wholesale_price == 313.77
        assert recorded.product.karat == "18K"
        assert recorded.quality.is_valid
        assert recorded.history_entry.product_id == recorded.product.id
        assert recorded.history_entry.retail_price == 363.77
        assert book.coefficients.data_version == 1

    def test_re_recording_replaces_product(self, book):
        first = book.record_price(earring())
        book.coefficients.set_market_price(600)
        second = book.record_price(earring())

        assert len(book.ledger) == 1
        assert len(book.history) == 2
        assert second.product.id != first.product.id
        assert second.product.wholesale_price > first.product.wholesale_price
        assert book.coefficients.data_version == 2

    def test_quality_issues_are_reported_not_raised(self, book):
        recorded = book.record_price(earring(weight=0))
        assert not recorded.quality.is_valid
        assert len(book.ledger) == 1

    def test_update_prices(self, book):
        first = book.record_price(earring())
        book.record_price(earring(productCode="KEW002"))
        book.coefficients.set_market_price(550)

        results = book.update_prices([first.product.id, "unknown"])

        assert len(results) == 1
        assert results[0].product.product_code == "KEW001"
        assert results[0].product.gold_price == 550
        assert len(book.ledger) == 2
        assert len(book.history) == 3
        assert book.coefficients.data_version == 3


@pytest.mark.unit
class TestSilverPricing:
    """925 은 제품 견적"""

    def test_record_silver_price(self, book):
        recorded = book.record_price({
            "productCode": "S925-001", "productName": "Silver stud", "karat": "925", "weight": 3, "laborCost": 10,
        })

        assert recorded.product.wholesale_price == 23.06
        assert recorded.product.retail_price == 26.06
        assert recorded.product.gold_price == 20
        assert recorded.product.gold_color == "银色"
        assert recorded.product.supplier_code == "E1"
        assert recorded.quality.is_valid
        assert recorded.history_entry.gold_price == 20

    def test_supplier_code_from_product_code(self, book):
        quote = book.quote({"productCode": "KEW001-T2", "karat": "925", "weight": 3, "laborCost": 2})
        assert (quote.wholesale_price, quote.retail_price) == (165.66, 170.91)

    def test_silver_price_change(self, book):
        book.coefficients.set_silver_price(30)
        quote = book.quote({"productCode": "S925-001", "karat": "925", "weight": 3, "laborCost": 10})
        # 재료 103.95 / 5 = 20.79
        assert quote.wholesale_price == 29.99

    def test_gold_quote_unaffected_by_silver_price(self, book):
        book.coefficients.set_silver_price(25)
        assert book.quote(earring()).wholesale_price == 313.77

    def test_silver_config_survives_snapshot(self, book, snapshot_cache):
        book.coefficients.set_silver_price(25)
        book.record_price({"productCode": "S925-001", "karat": "925", "weight": 3, "laborCost": 10})
        assert book.save(snapshot_cache)

        restored = QuoteBook.load(snapshot_cache, USER_ID)

        assert restored.coefficients.silver_price == 25
        assert restored.coefficients.silver_coefficients == book.coefficients.silver_coefficients


@pytest.mark.unit
class TestSnapshot:
    """로컬 스냅샷"""

    def test_snapshot_contents(self, book):
        book.record_price(earring())
        snapshot = book.snapshot()

        assert len(snapshot.products) == 1
        assert len(snapshot.price_history) == 1
        assert snapshot.configs[GOLD_PRICE_KEY]["value"] == 500
        assert snapshot.configs[DATA_VERSION_KEY]["value"] == 1

    def test_save_and_load(self, book, snapshot_cache):
        recorded = book.record_price(earring())
        assert book.save(snapshot_cache)

        restored = QuoteBook.load(snapshot_cache, USER_ID)

        product = restored.ledger.get(recorded.product.id)
        assert product.wholesale_price == 313.77
        assert product.timestamp == recorded.product.timestamp
        assert recorded.history_entry.id in restored.history
        assert restored.coefficients.market_price == 500
        assert restored.coefficients.data_version == 1

    def test_load_missing_snapshot(self, snapshot_cache):
        assert QuoteBook.load(snapshot_cache, "nobody") is None

    def test_unreadable_records_are_dropped(self):
        snapshot = LocalSnapshot(
            products=[{"id": "p1", "productCode": "A"}, {"productCode": "no-id"}],
            price_history=[
                {"id": "h1", "productId": "p1", "productCode": "A"},
                {"id": "h1", "productId": "p1", "productCode": "A"},
                {"id": "h2", "productCode": "A"},
            ],
        )
        restored = QuoteBook.from_snapshot(USER_ID, snapshot)

        assert [p.id for p in restored.ledger.records()] == ["p1"]
        assert restored.ledger.get("p1").user_id == USER_ID
        assert len(restored.history) == 1
