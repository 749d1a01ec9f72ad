"""
Price computation for 925 silver items.

General suppliers are quoted from a CNY base:

    material   = silverPrice * weight * materialLoss * materialFloat
    commission = laborCost * commissionFactor
    total      = material / rate
                 + (laborCost + accessoryCost + platingCost) / rate * laborFactor
                 + stoneCost / rate * stoneMarkupFactor
                 + commission / rate

Suppliers whose code starts with ``T`` quote labor in USD:

    material = silverPrice * weight * tMaterialLoss * tMaterialFloat
    other    = (accessoryCost + stoneCost + platingCost + commission) * tMaterialLossFactor2
    total    = (material * tMaterialLossFactor2 * tMaterialFloat + laborCost * laborFactor + other)
               * tShippingTaxFactor * usdToCad

Both are rounded half away from zero to cents.
"""

import re
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from config.settings import settings
from models.base import PriceKind, PurityTier
from models.records import PricedRecord
from pricing.calculator import PriceQuote, round_half_away
from utils.exceptions import ConfigurationError


DEFAULT_SUPPLIER_CODE = "E1"

# silver_price_config 의 coefficients 키 (클라이언트와 공유)
_CONFIG_KEYS = {
    "labor_factor_retail": "laborFactorRetail",
    "labor_factor_wholesale": "laborFactorWholesale",
    "material_loss": "silverMaterialLoss",
    "material_float": "silverMaterialFloat",
    "shipping_tax_factor": "internationalShippingTaxFactor",
    "exchange_rate": "exchangeRate",
    "commission_factor": "commissionFactor",
    "stone_markup_factor": "stoneMarkupFactor",
    "t_material_loss": "tSilverMaterialLoss",
    "t_material_loss_factor2": "tMaterialLossFactor2",
    "t_material_float": "tMaterialFloatFactor",
    "t_shipping_tax_factor": "tInternationalShippingTaxFactor",
    "usd_to_cad_rate": "usdToCadExchangeRate",
}

# 은 제품에 적용되는 상품별 특수 계수
_SPECIAL_OVERRIDES = {
    "special_labor_factor_retail": "labor_factor_retail",
    "special_labor_factor_wholesale": "labor_factor_wholesale",
}

_SILVER_CODE = re.compile(r"^([A-Z]+[0-9]+)-?([A-Z][A-Z0-9]*)$")


def is_silver(purity: Union[PurityTier, str, None]) -> bool:
    return str(getattr(purity, "value", purity)) == PurityTier.S925.value


@dataclass(frozen=True)
class SilverCoefficientSet:
    """은 제품 가격 계수 묶음 (값 객체)"""

    labor_factor_retail: float = 5.0
    labor_factor_wholesale: float = 3.5
    material_loss: float = 1.05
    material_float: float = 1.1
    shipping_tax_factor: float = 1.25
    exchange_rate: float = 5.0
    commission_factor: float = 1.1
    stone_markup_factor: float = 1.3
    t_material_loss: float = 1.05
    t_material_loss_factor2: float = 1.15
    t_material_float: float = 1.1
    t_shipping_tax_factor: float = 1.25
    usd_to_cad_rate: float = 1.4

    @classmethod
    def from_settings(cls) -> "SilverCoefficientSet":
        silver = settings.silver
        return cls(**{name: getattr(silver, name) for name in _CONFIG_KEYS})

    @classmethod
    def from_config(cls, value: Optional[Mapping[str, Any]]) -> "SilverCoefficientSet":
        """coefficients 설정 값에서 생성 (누락된 키는 기본값)"""
        defaults = cls.from_settings()
        if not value:
            return defaults

        overrides = {}
        for name, key in _CONFIG_KEYS.items():
            if value.get(key) is not None:
                overrides[name] = float(value[key])
        return replace(defaults, **overrides)

    def to_config(self) -> Dict[str, float]:
        return {key: getattr(self, name) for name, key in _CONFIG_KEYS.items()}

    def with_overrides(self, record: PricedRecord) -> "SilverCoefficientSet":
        overrides = {}
        for special, name in _SPECIAL_OVERRIDES.items():
            value = getattr(record, special, None)
            if value is not None:
                overrides[name] = value
        if not overrides:
            return self
        return replace(self, **overrides)

    def labor_factor(self, price_kind: Union[PriceKind, str]) -> float:
        if PriceKind(price_kind) is PriceKind.RETAIL:
            return self.labor_factor_retail
        return self.labor_factor_wholesale


def parse_silver_code(product_code: str) -> Tuple[str, str]:
    """
    은 제품 코드에서 (순수 코드, 공급처 코드) 분리

    ``KEW001E1`` / ``KEW001-K5`` 처럼 뒤에 붙은 공급처 코드를 떼어낸다.
    분리할 수 없으면 코드 전체와 기본 공급처 ``E1``.
    """
    code = (product_code or "").strip()
    match = _SILVER_CODE.match(code)
    if match:
        return match.group(1), match.group(2)
    return code, DEFAULT_SUPPLIER_CODE


def is_usd_supplier(supplier_code: str) -> bool:
    return (supplier_code or "").upper().startswith(settings.silver.t_supplier_prefix.upper())


def compute_silver_price(silver_price: float, weight: float, labor_cost: float,
                         price_kind: Union[PriceKind, str], coeffs: SilverCoefficientSet, *,
                         accessory_cost: float = 0.0, stone_cost: float = 0.0,
                         plating_cost: float = 0.0, commission: float = 0.0,
                         supplier_code: str = DEFAULT_SUPPLIER_CODE) -> float:
    """은 제품 단일 가격 계산"""
    labor_factor = coeffs.labor_factor(price_kind)

    if is_usd_supplier(supplier_code):
        material = silver_price * weight * coeffs.t_material_loss * coeffs.t_material_float
        other_costs = (accessory_cost + stone_cost + plating_cost + commission) * coeffs.t_material_loss_factor2
        total = (
            material * coeffs.t_material_loss_factor2 * coeffs.t_material_float
            + labor_cost * labor_factor
            + other_costs
        ) * coeffs.t_shipping_tax_factor * coeffs.usd_to_cad_rate
        return round_half_away(total)

    rate = coeffs.exchange_rate
    if rate == 0:
        raise ConfigurationError("Silver exchange rate must not be zero", context={"exchange_rate": 0})

    material = silver_price * weight * coeffs.material_loss * coeffs.material_float
    calculated_commission = labor_cost * coeffs.commission_factor
    total = (
        material / rate
        + (labor_cost / rate + accessory_cost / rate + plating_cost / rate) * labor_factor
        + stone_cost / rate * coeffs.stone_markup_factor
        + calculated_commission / rate
    )
    return round_half_away(total)


def price_silver_record(record: PricedRecord, silver_price: float,
                        coeffs: SilverCoefficientSet) -> PriceQuote:
    """은 제품 레코드의 도매가/소매가 계산"""
    effective = coeffs.with_overrides(record)
    inputs = {
        "accessory_cost": record.accessory_cost,
        "stone_cost": record.stone_cost,
        "plating_cost": record.plating_cost,
        "commission": record.commission,
        "supplier_code": record.supplier_code or DEFAULT_SUPPLIER_CODE,
    }
    return PriceQuote(
        wholesale_price=compute_silver_price(
            silver_price, record.weight, record.labor_cost, PriceKind.WHOLESALE, effective, **inputs
        ),
        retail_price=compute_silver_price(
            silver_price, record.weight, record.labor_cost, PriceKind.RETAIL, effective, **inputs
        ),
    )
