"""
Product model for the jewelry quote system.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional, Tuple

from sqlalchemy import DateTime, Index, DECIMAL, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BaseModel, USER_ID_LENGTH


# 숫자 컬럼 (precision, scale)
NUMERIC_PRECISION: Dict[str, Tuple[int, int]] = {
    "weight": (10, 3),
    "labor_cost": (10, 2),
    "gold_price": (10, 2),
    "wholesale_price": (12, 2),
    "retail_price": (12, 2),
    "accessory_cost": (10, 2),
    "stone_cost": (10, 2),
    "plating_cost": (10, 2),
    "mold_cost": (10, 2),
    "commission": (10, 2),
    "special_material_loss": (5, 2),
    "special_material_cost": (5, 2),
    "special_profit_margin": (5, 2),
    "special_labor_factor_retail": (5, 2),
    "special_labor_factor_wholesale": (5, 2),
}


class PricingColumnsMixin:
    """상품과 가격 이력이 공유하는 가격 관련 컬럼"""

    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), nullable=False)

    # 분류 정보
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    sub_category: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    product_code: Mapped[str] = mapped_column(String(100), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    specification: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    # 재료 정보
    weight: Mapped[Decimal] = mapped_column(DECIMAL(10, 3), nullable=False)
    labor_cost: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    karat: Mapped[str] = mapped_column(String(10), nullable=False)
    gold_color: Mapped[str] = mapped_column(String(20), nullable=False)

    # 가격 정보
    gold_price: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    wholesale_price: Mapped[Decimal] = mapped_column(DECIMAL(12, 2), nullable=False)
    retail_price: Mapped[Decimal] = mapped_column(DECIMAL(12, 2), nullable=False)

    # 부가 원가
    accessory_cost: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    stone_cost: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    plating_cost: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    mold_cost: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    commission: Mapped[Decimal] = mapped_column(DECIMAL(10, 2), nullable=False)
    supplier_code: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    order_channel: Mapped[Optional[str]] = mapped_column(String(20))
    shape: Mapped[Optional[str]] = mapped_column(String(50))

    # 상품별 특수 계수 (없으면 전역 계수 사용)
    special_material_loss: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(5, 2))
    special_material_cost: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(5, 2))
    special_profit_margin: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(5, 2))
    special_labor_factor_retail: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(5, 2))
    special_labor_factor_wholesale: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(5, 2))

    # 원가 항목별 갱신 시각
    labor_cost_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    accessory_cost_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    stone_cost_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    plating_cost_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    mold_cost_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    commission_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Product(Base, BaseModel, PricingColumnsMixin):
    """상품 모델 (상품 코드별 현재 상태)"""

    __tablename__ = "products"

    # (category, product_code) 유일성은 애플리케이션에서 보장한다
    __table_args__ = (
        Index('idx_products_user_id', 'user_id'),
        Index('idx_products_user_code', 'user_id', 'category', 'product_code'),
        Index('idx_products_category', 'category'),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, code={self.product_code}, category={self.category})>"
