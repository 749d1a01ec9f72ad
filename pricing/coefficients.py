"""
User-scoped pricing configuration: market gold price, coefficient set and
data version, persisted as config entries (``goldPrice``, ``priceCoefficients``,
``dataVersion``). The silver price and silver coefficients share one entry,
``silver_price_config`` = ``{silverPrice, coefficients}``. Unknown keys are
carried as opaque values.
"""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from config.settings import settings
from models.records import ConfigEntry, utcnow
from pricing.calculator import CoefficientSet, PriceQuote, price_record
from pricing.silver import SilverCoefficientSet, is_silver, price_silver_record
from utils.exceptions import ValidationError
from utils.logging import get_logger
from utils.validation import ensure_utc


logger = get_logger(__name__)

GOLD_PRICE_KEY = "goldPrice"
COEFFICIENTS_KEY = "priceCoefficients"
DATA_VERSION_KEY = "dataVersion"
SILVER_PRICE_KEY = "silver_price_config"

SYNCED_CONFIG_KEYS = (GOLD_PRICE_KEY, COEFFICIENTS_KEY, DATA_VERSION_KEY)


def _unwrap(value: Any) -> Any:
    """{value, updatedAt} 형태면 value 만 꺼냄"""
    if isinstance(value, Mapping) and "value" in value:
        return value["value"]
    return value


def _updated_at(value: Any) -> Optional[datetime]:
    if isinstance(value, Mapping) and value.get("updatedAt"):
        try:
            return ensure_utc(datetime.fromisoformat(str(value["updatedAt"]).replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


class CoefficientStore:
    """시장 금 시세와 계수 묶음 보관"""

    def __init__(self, market_price: Optional[float] = None,
                 coefficients: Optional[CoefficientSet] = None,
                 data_version: Optional[int] = None,
                 extras: Optional[Dict[str, Any]] = None,
                 silver_price: Optional[float] = None,
                 silver_coefficients: Optional[SilverCoefficientSet] = None):
        self._market_price = settings.pricing.default_gold_price if market_price is None else market_price
        self._coefficients = coefficients or CoefficientSet.from_settings()
        self._data_version = data_version
        self._silver_price = settings.silver.default_silver_price if silver_price is None else silver_price
        self._silver_coefficients = silver_coefficients or SilverCoefficientSet.from_settings()
        # 은 설정은 값이 주어졌을 때만 저장
        self._silver_configured = silver_price is not None or silver_coefficients is not None
        self.extras: Dict[str, Any] = dict(extras or {})

        now = utcnow()
        self.market_price_updated_at: datetime = now
        self.coefficients_updated_at: datetime = now
        self.data_version_updated_at: datetime = now
        self.silver_updated_at: datetime = now

    @property
    def market_price(self) -> float:
        return self._market_price

    @property
    def coefficients(self) -> CoefficientSet:
        return self._coefficients

    @property
    def data_version(self) -> Optional[int]:
        return self._data_version

    @property
    def silver_price(self) -> float:
        return self._silver_price

    @property
    def silver_coefficients(self) -> SilverCoefficientSet:
        return self._silver_coefficients

    def set_market_price(self, value: float) -> None:
        """시장 금 시세 변경"""
        value = float(value)
        if value <= 0:
            raise ValidationError(f"market price must be greater than 0, got {value}", field=GOLD_PRICE_KEY)
        self._market_price = value
        self.market_price_updated_at = utcnow()
        logger.info(f"Market gold price set to {value}")

    def set_coefficients(self, coefficients: CoefficientSet) -> None:
        self._coefficients = coefficients
        self.coefficients_updated_at = utcnow()

    def set_silver_price(self, value: float) -> None:
        """은 시세 변경"""
        value = float(value)
        if value <= 0:
            raise ValidationError(f"silver price must be greater than 0, got {value}", field=SILVER_PRICE_KEY)
        self._silver_price = value
        self._silver_configured = True
        self.silver_updated_at = utcnow()
        logger.info(f"Silver price set to {value}")

    def set_silver_coefficients(self, coefficients: SilverCoefficientSet) -> None:
        self._silver_coefficients = coefficients
        self._silver_configured = True
        self.silver_updated_at = utcnow()

    def price_for(self, karat: str) -> float:
        """순도에 맞는 시세 (925 는 은 시세)"""
        return self._silver_price if is_silver(karat) else self._market_price

    def quote(self, record) -> PriceQuote:
        """순도에 따라 금/은 계산식을 골라 도매가/소매가 계산"""
        if is_silver(record.karat):
            return price_silver_record(record, self._silver_price, self._silver_coefficients)
        return price_record(record, self._market_price, self._coefficients)

    def bump_data_version(self) -> int:
        """데이터 변경 시 버전 증가"""
        self._data_version = (self._data_version or 0) + 1
        self.data_version_updated_at = utcnow()
        return self._data_version

    def to_configs(self) -> Dict[str, Any]:
        """설정 저장소에 쓸 {key: {value, updatedAt}} 딕셔너리"""
        configs: Dict[str, Any] = {
            GOLD_PRICE_KEY: {
                "value": self._market_price,
                "updatedAt": self.market_price_updated_at.isoformat(),
            },
            COEFFICIENTS_KEY: {
                "value": self._coefficients.to_config(),
                "updatedAt": self.coefficients_updated_at.isoformat(),
            },
        }
        if self._data_version is not None:
            configs[DATA_VERSION_KEY] = {
                "value": self._data_version,
                "updatedAt": self.data_version_updated_at.isoformat(),
            }
        if self._silver_configured:
            configs[SILVER_PRICE_KEY] = {
                "value": {
                    "silverPrice": self._silver_price,
                    "coefficients": self._silver_coefficients.to_config(),
                },
                "updatedAt": self.silver_updated_at.isoformat(),
            }
        configs.update(self.extras)
        return configs

    @classmethod
    def from_configs(cls, configs: Mapping[str, Any]) -> "CoefficientStore":
        """{key: value} 에서 복원 (값은 {value, updatedAt} 또는 원시 값)"""
        extras = dict(configs or {})
        raw_gold = extras.pop(GOLD_PRICE_KEY, None)
        raw_coefficients = extras.pop(COEFFICIENTS_KEY, None)
        raw_version = extras.pop(DATA_VERSION_KEY, None)
        raw_silver = extras.pop(SILVER_PRICE_KEY, None)

        gold_price = _unwrap(raw_gold)
        data_version = _unwrap(raw_version)
        silver = _unwrap(raw_silver)
        if not isinstance(silver, Mapping):
            silver = {}
        silver_price = silver.get("silverPrice")

        store = cls(
            market_price=float(gold_price) if gold_price is not None else None,
            coefficients=CoefficientSet.from_config(_unwrap(raw_coefficients)),
            data_version=int(data_version) if data_version is not None else None,
            extras=extras,
            silver_price=float(silver_price) if silver_price is not None else None,
            silver_coefficients=(
                SilverCoefficientSet.from_config(silver.get("coefficients")) if raw_silver is not None else None
            ),
        )

        for raw, attr in ((raw_gold, "market_price_updated_at"),
                          (raw_coefficients, "coefficients_updated_at"),
                          (raw_version, "data_version_updated_at"),
                          (raw_silver, "silver_updated_at")):
            updated_at = _updated_at(raw)
            if updated_at:
                setattr(store, attr, updated_at)
        return store

    @classmethod
    def from_entries(cls, entries: Mapping[str, ConfigEntry]) -> "CoefficientStore":
        return cls.from_configs({key: entry.value for key, entry in entries.items()})

    def load(self, repository, user_id: str) -> None:
        """설정 저장소에서 현재 값 읽어오기"""
        entries = {entry.key: entry for entry in repository.get_all_configs(user_id)}
        loaded = self.from_entries(entries)
        self.__dict__.update(loaded.__dict__)
        logger.info(f"Loaded pricing configuration for user {user_id}: {sorted(entries)}")

    def save(self, repository, user_id: str) -> int:
        """설정 저장소에 모든 항목 upsert"""
        configs = self.to_configs()
        for key, value in configs.items():
            repository.set_config(user_id, key, value)
        return len(configs)
