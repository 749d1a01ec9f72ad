"""
은 제품 가격 계산 단위 테스트

일반 공급처(CNY 기준)와 T 공급처(USD 기준) 계산식, 공급처 코드 분리를 검증합니다.
"""
import pytest

from models.base import PriceKind, PurityTier
from models.records import ProductRecord
from pricing.silver import (
    SilverCoefficientSet, compute_silver_price, is_silver, parse_silver_code, price_silver_record
)
from utils.exceptions import ConfigurationError


@pytest.fixture
def silver_coeffs():
    """기본 은 계수 묶음"""
    return SilverCoefficientSet()


@pytest.mark.unit
class TestGeneralSupplier:
    """일반 공급처 (CNY 기준)"""

    def test_wholesale_price(self, silver_coeffs):
        """13.86 (재료) + 2 * 3.5 (공임) + 2.2 (수수료)"""
        price = compute_silver_price(20, 3, 10, PriceKind.WHOLESALE, silver_coeffs)
        assert price == 23.06

    def test_retail_price(self, silver_coeffs):
        price = compute_silver_price(20, 3, 10, "retail", silver_coeffs)
        assert price == 26.06

    def test_stone_uses_markup_factor(self, silver_coeffs):
        """스톤은 공임 계수가 아니라 스톤 가산 계수로 반영"""
        costs = {"accessory_cost": 2, "stone_cost": 5, "plating_cost": 1}
        assert compute_silver_price(20, 3, 10, PriceKind.WHOLESALE, silver_coeffs, **costs) == 26.46
        assert compute_silver_price(20, 3, 10, PriceKind.RETAIL, silver_coeffs, **costs) == 30.36

    def test_zero_exchange_rate_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            compute_silver_price(20, 3, 10, PriceKind.WHOLESALE, SilverCoefficientSet(exchange_rate=0))


@pytest.mark.unit
class TestUsdSupplier:
    """T 로 시작하는 공급처 (USD 기준, CAD 환산)"""

    def test_wholesale_and_retail(self, silver_coeffs):
        wholesale = compute_silver_price(20, 3, 2, PriceKind.WHOLESALE, silver_coeffs, supplier_code="T2")
        retail = compute_silver_price(20, 3, 2, PriceKind.RETAIL, silver_coeffs, supplier_code="t2")

        assert wholesale == 165.66
        assert retail == 170.91

    def test_commission_is_a_cost(self, silver_coeffs):
        """T 공급처의 수수료는 부가 원가로 합산"""
        price = compute_silver_price(
            20, 3, 2, PriceKind.WHOLESALE, silver_coeffs, commission=4, supplier_code="T2"
        )
        assert price == 173.71

    def test_ignores_cny_exchange_rate(self):
        coeffs = SilverCoefficientSet(exchange_rate=0)
        assert compute_silver_price(20, 3, 2, PriceKind.WHOLESALE, coeffs, supplier_code="T2") == 165.66


@pytest.mark.unit
class TestSilverCoefficientSet:
    """은 계수 묶음"""

    def test_from_settings_matches_defaults(self):
        assert SilverCoefficientSet.from_settings() == SilverCoefficientSet()

    def test_from_config_partial(self):
        coeffs = SilverCoefficientSet.from_config({"laborFactorWholesale": 3, "exchangeRate": "6", "silverPrice": 25})
        assert coeffs.labor_factor_wholesale == 3.0
        assert coeffs.exchange_rate == 6.0
        assert coeffs.stone_markup_factor == 1.3

    def test_to_config_keys(self):
        config = SilverCoefficientSet().to_config()
        assert config["tSilverMaterialLoss"] == 1.05
        assert config["usdToCadExchangeRate"] == 1.4
        assert SilverCoefficientSet.from_config(config) == SilverCoefficientSet()


@pytest.mark.unit
class TestPriceSilverRecord:
    """레코드 단위 계산"""

    def test_record_prices(self, silver_coeffs):
        record = ProductRecord(product_code="S925-001", karat="925", weight=3, labor_cost=10)
        quote = price_silver_record(record, 20, silver_coeffs)
        assert (quote.wholesale_price, quote.retail_price) == (23.06, 26.06)

    def test_special_labor_factor(self, silver_coeffs):
        record = ProductRecord(karat="925", weight=3, labor_cost=10, special_labor_factor_wholesale=5)
        assert price_silver_record(record, 20, silver_coeffs).wholesale_price == 26.06

    def test_supplier_code_on_record(self, silver_coeffs):
        record = ProductRecord(karat="925", weight=3, labor_cost=2, supplier_code="T2")
        assert price_silver_record(record, 20, silver_coeffs).wholesale_price == 165.66


@pytest.mark.unit
class TestSilverHelpers:
    """보조 함수"""

    @pytest.mark.parametrize("code,expected", [
        ("KEW001E1", ("KEW001", "E1")),
        ("KEW001-K5", ("KEW001", "K5")),
        ("KEW001-T2", ("KEW001", "T2")),
        ("KEW001", ("KEW001", "E1")),
        ("S925-001", ("S925-001", "E1")),
    ])
    def test_parse_silver_code(self, code, expected):
        assert parse_silver_code(code) == expected

    def test_is_silver(self):
        assert is_silver(PurityTier.S925)
        assert is_silver("925")
        assert is_silver(925)
        assert not is_silver("18K")
        assert not is_silver(None)
