"""
Deterministic price computation for gold jewelry.

    materialPrice = marketPrice * goldFactor * weight * materialLoss * materialCost / exchangeRate
    laborPrice    = laborCost * laborFactor / exchangeRate
    otherCosts    = (accessoryCost + stoneCost + platingCost) * laborFactor / exchangeRate
    total         = (materialPrice + laborPrice + otherCosts) * (1 + commission / 100) * profitMargin

The result is rounded half away from zero to cents. Inputs are never rejected
here (weight <= 0 etc. are data-quality issues, see ``utils.validation``);
only an unusable coefficient set raises ``ConfigurationError``.
"""

import math
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from config.settings import settings
from models.base import GoldColor, PriceKind, PurityTier
from models.records import PricedRecord
from utils.exceptions import ConfigurationError


# priceCoefficients 설정 값의 키 (클라이언트와 공유)
_CONFIG_KEYS = {
    "labor_factor_retail": "laborFactorRetail",
    "labor_factor_wholesale": "laborFactorWholesale",
    "material_loss": "materialLoss",
    "material_cost": "materialCost",
    "profit_margin": "profitMargin",
    "exchange_rate": "exchangeRate",
}

# 상품별 특수 계수 -> 전역 계수
_SPECIAL_OVERRIDES = {
    "special_material_loss": "material_loss",
    "special_material_cost": "material_cost",
    "special_profit_margin": "profit_margin",
    "special_labor_factor_retail": "labor_factor_retail",
    "special_labor_factor_wholesale": "labor_factor_wholesale",
}

_SLASH_KARAT = re.compile(r"/(10K|14K|18K)(?=/|$|[^A-Z])")
_TRAILING_KARAT = re.compile(r"(10K|14K|18K)$")
_K_PREFIX = re.compile(r"^K(10|14|18)")
_SLASH_K_PREFIX = re.compile(r"/K(10|14|18)(?=/|$|[^A-Z])")


def _default_gold_factors() -> Dict[str, float]:
    return dict(settings.pricing.gold_factors)


@dataclass(frozen=True)
class CoefficientSet:
    """가격 계산 계수 묶음 (값 객체)"""

    gold_factors: Dict[str, float] = field(default_factory=_default_gold_factors)
    labor_factor_retail: float = 5.0
    labor_factor_wholesale: float = 3.0
    material_loss: float = 1.15
    material_cost: float = 1.1
    profit_margin: float = 1.25
    exchange_rate: float = 5.0

    @classmethod
    def from_settings(cls) -> "CoefficientSet":
        """설정 파일 기본값으로 생성"""
        pricing = settings.pricing
        return cls(
            gold_factors=dict(pricing.gold_factors),
            labor_factor_retail=pricing.labor_factor_retail,
            labor_factor_wholesale=pricing.labor_factor_wholesale,
            material_loss=pricing.material_loss,
            material_cost=pricing.material_cost,
            profit_margin=pricing.profit_margin,
            exchange_rate=pricing.exchange_rate,
        )

    @classmethod
    def from_config(cls, value: Optional[Mapping[str, Any]]) -> "CoefficientSet":
        """priceCoefficients 설정 값에서 생성 (누락된 키는 기본값)"""
        defaults = cls.from_settings()
        if not value:
            return defaults

        gold_factors = dict(defaults.gold_factors)
        for key, raw in value.items():
            if key.startswith("goldFactor") and raw is not None:
                gold_factors[key[len("goldFactor"):]] = float(raw)

        overrides = {}
        for name, key in _CONFIG_KEYS.items():
            if value.get(key) is not None:
                overrides[name] = float(value[key])

        return replace(defaults, gold_factors=gold_factors, **overrides)

    def to_config(self) -> Dict[str, float]:
        """priceCoefficients 설정 값으로 변환"""
        config = {f"goldFactor{tier}": factor for tier, factor in self.gold_factors.items()}
        for name, key in _CONFIG_KEYS.items():
            config[key] = getattr(self, name)
        return config

    def with_overrides(self, record: PricedRecord) -> "CoefficientSet":
        """상품 특수 계수를 필드 단위로 적용 (None 이 아닌 값만)"""
        overrides = {}
        for special, name in _SPECIAL_OVERRIDES.items():
            value = getattr(record, special, None)
            if value is not None:
                overrides[name] = value
        if not overrides:
            return self
        return replace(self, **overrides)

    def gold_factor(self, purity: Union[PurityTier, str]) -> float:
        tier = getattr(purity, "value", purity)
        if tier not in self.gold_factors:
            raise ConfigurationError(
                f"No gold factor configured for purity {tier}",
                context={"purity": tier, "configured": sorted(self.gold_factors)}
            )
        return self.gold_factors[tier]

    def labor_factor(self, price_kind: Union[PriceKind, str]) -> float:
        kind = PriceKind(price_kind)
        if kind is PriceKind.RETAIL:
            return self.labor_factor_retail
        return self.labor_factor_wholesale


@dataclass
class PriceQuote:
    """도매가/소매가 계산 결과"""

    wholesale_price: float
    retail_price: float


def round_half_away(value: float) -> float:
    """센트 단위 반올림 (0 에서 먼 쪽으로)"""
    sign = -1.0 if value < 0 else 1.0
    return sign * math.floor(abs(value) * 100 + 0.5) / 100


def compute_price(market_price: float, weight: float, labor_cost: float,
                  purity: Union[PurityTier, str], price_kind: Union[PriceKind, str],
                  coeffs: CoefficientSet, *, accessory_cost: float = 0.0,
                  stone_cost: float = 0.0, plating_cost: float = 0.0,
                  commission: float = 0.0) -> float:
    """단일 가격 계산"""
    if coeffs.exchange_rate == 0:
        raise ConfigurationError("Exchange rate must not be zero", context={"exchange_rate": 0})

    gold_factor = coeffs.gold_factor(purity)
    labor_factor = coeffs.labor_factor(price_kind)

    material_price = (
        market_price * gold_factor * weight * coeffs.material_loss * coeffs.material_cost
        / coeffs.exchange_rate
    )
    labor_price = labor_cost * labor_factor / coeffs.exchange_rate
    other_costs = (accessory_cost + stone_cost + plating_cost) * labor_factor / coeffs.exchange_rate

    total = (material_price + labor_price + other_costs) * (1 + commission / 100) * coeffs.profit_margin
    return round_half_away(total)


def price_record(record: PricedRecord, market_price: float, coeffs: CoefficientSet) -> PriceQuote:
    """레코드의 특수 계수를 반영해 도매가/소매가 계산"""
    effective = coeffs.with_overrides(record)
    costs = {
        "accessory_cost": record.accessory_cost,
        "stone_cost": record.stone_cost,
        "plating_cost": record.plating_cost,
        "commission": record.commission,
    }
    return PriceQuote(
        wholesale_price=compute_price(
            market_price, record.weight, record.labor_cost, record.karat,
            PriceKind.WHOLESALE, effective, **costs
        ),
        retail_price=compute_price(
            market_price, record.weight, record.labor_cost, record.karat,
            PriceKind.RETAIL, effective, **costs
        ),
    )


def detect_purity(product_code: str) -> Tuple[str, str]:
    """
    상품 코드에서 순도 추정

    순서: ``/18K`` 형식, ``18K`` 로 끝남, ``K18`` 접두사, ``/K18`` 형식.
    어느 것도 없으면 18K. 색상은 항상 黄金.
    """
    code = (product_code or "").upper()
    karat = PurityTier.K18.value

    match = _SLASH_KARAT.search(code) or _TRAILING_KARAT.search(code)
    if match:
        karat = match.group(1)
    else:
        match = _K_PREFIX.search(code) or _SLASH_K_PREFIX.search(code)
        if match:
            karat = f"{match.group(1)}K"

    return karat, GoldColor.YELLOW.value
