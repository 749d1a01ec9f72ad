"""
Price history model for the append-only pricing log.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import Base, ID_LENGTH
from .product import PricingColumnsMixin


class PriceHistory(Base, PricingColumnsMixin):
    """가격 계산 이력 모델"""

    __tablename__ = "price_history"

    id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        primary_key=True,
        default=lambda: str(uuid4())
    )

    # 교체/삭제된 상품을 가리킬 수 있으므로 외래키를 걸지 않는다
    product_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    # 인덱스
    __table_args__ = (
        Index('idx_price_history_user_id', 'user_id'),
        Index('idx_price_history_product_id', 'product_id'),
        Index('idx_price_history_timestamp', 'timestamp'),
    )

    def __repr__(self) -> str:
        return f"<PriceHistory(product_id={self.product_id}, retail={self.retail_price}, timestamp={self.timestamp})>"
