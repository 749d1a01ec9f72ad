"""
CoefficientStore 단위 테스트
"""
import pytest

from pricing.calculator import CoefficientSet
from pricing.coefficients import (
    COEFFICIENTS_KEY, DATA_VERSION_KEY, GOLD_PRICE_KEY, SILVER_PRICE_KEY, CoefficientStore
)
from pricing.silver import SilverCoefficientSet
from utils.exceptions import ValidationError


@pytest.mark.unit
class TestCoefficientStore:
    """시세/계수 보관"""

    def test_defaults_from_settings(self):
        store = CoefficientStore()
        assert store.market_price == 500.0
        assert store.coefficients == CoefficientSet.from_settings()
        assert store.data_version is None

    def test_set_market_price(self):
        store = CoefficientStore()
        store.set_market_price("612.5")
        assert store.market_price == 612.5

    @pytest.mark.parametrize("value", [0, -1])
    def test_rejects_non_positive_market_price(self, value):
        store = CoefficientStore(market_price=500)
        with pytest.raises(ValidationError):
            store.set_market_price(value)
        assert store.market_price == 500

    def test_bump_data_version(self):
        store = CoefficientStore()
        assert store.bump_data_version() == 1
        assert store.bump_data_version() == 2

    def test_to_configs_shape(self):
        store = CoefficientStore(market_price=520)
        configs = store.to_configs()

        assert set(configs) == {GOLD_PRICE_KEY, COEFFICIENTS_KEY}
        assert configs[GOLD_PRICE_KEY]["value"] == 520
        assert "updatedAt" in configs[GOLD_PRICE_KEY]
        assert configs[COEFFICIENTS_KEY]["value"]["goldFactor18K"] == 0.755

    def test_from_configs_wrapped_values(self):
        store = CoefficientStore.from_configs({
            GOLD_PRICE_KEY: {"value": 530, "updatedAt": "2024-05-01T09:00:00.000Z"},
            COEFFICIENTS_KEY: {"value": {"profitMargin": 1.3}},
            DATA_VERSION_KEY: {"value": 7},
        })
        assert store.market_price == 530.0
        assert store.coefficients.profit_margin == 1.3
        assert store.data_version == 7
        assert store.market_price_updated_at.isoformat() == "2024-05-01T09:00:00+00:00"

    def test_from_configs_raw_values(self):
        store = CoefficientStore.from_configs({GOLD_PRICE_KEY: 480, DATA_VERSION_KEY: "3"})
        assert store.market_price == 480.0
        assert store.data_version == 3

    def test_unknown_keys_are_carried(self):
        """알 수 없는 설정 키는 그대로 보존"""
        preferences = {"value": {"theme": "dark"}}
        store = CoefficientStore.from_configs({"uiPreferences": preferences})
        assert store.extras == {"uiPreferences": preferences}
        assert store.to_configs()["uiPreferences"] == preferences


@pytest.mark.unit
class TestSilverConfig:
    """silver_price_config 항목"""

    def test_defaults_not_written(self):
        store = CoefficientStore()
        assert store.silver_price == 20.0
        assert store.silver_coefficients == SilverCoefficientSet()
        assert SILVER_PRICE_KEY not in store.to_configs()

    def test_from_configs(self):
        store = CoefficientStore.from_configs({
            SILVER_PRICE_KEY: {
                "value": {"silverPrice": 22, "coefficients": {"laborFactorWholesale": 3, "silverPrice": 22}},
                "updatedAt": "2024-05-01T09:00:00.000Z",
            },
        })
        assert store.silver_price == 22.0
        assert store.silver_coefficients.labor_factor_wholesale == 3.0
        assert store.silver_updated_at.isoformat() == "2024-05-01T09:00:00+00:00"
        assert store.extras == {}

    def test_round_trip(self):
        store = CoefficientStore()
        store.set_silver_price(23.5)
        configs = store.to_configs()

        assert configs[SILVER_PRICE_KEY]["value"]["silverPrice"] == 23.5
        assert configs[SILVER_PRICE_KEY]["value"]["coefficients"]["stoneMarkupFactor"] == 1.3

        restored = CoefficientStore.from_configs(configs)
        assert restored.silver_price == 23.5
        assert restored.silver_coefficients == store.silver_coefficients

    def test_unreadable_value_falls_back_to_defaults(self):
        store = CoefficientStore.from_configs({SILVER_PRICE_KEY: {"value": {"price": 6.2}}})
        assert store.silver_price == 20.0
        assert store.silver_coefficients == SilverCoefficientSet()

    @pytest.mark.parametrize("value", [0, -5])
    def test_rejects_non_positive_silver_price(self, value):
        store = CoefficientStore()
        with pytest.raises(ValidationError):
            store.set_silver_price(value)
        assert store.silver_price == 20.0

    def test_price_for(self):
        store = CoefficientStore(market_price=510, silver_price=21)
        assert store.price_for("18K") == 510
        assert store.price_for("925") == 21
