"""
Per-user configuration entries (gold price, coefficients, data version).
"""

from typing import Any

from sqlalchemy import JSON, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BaseModel, USER_ID_LENGTH


class AppConfig(Base, BaseModel):
    """사용자별 설정 값 모델"""

    __tablename__ = "app_config"

    user_id: Mapped[str] = mapped_column(String(USER_ID_LENGTH), nullable=False)
    config_key: Mapped[str] = mapped_column(String(100), nullable=False)
    config_value: Mapped[Any] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'config_key', name='uk_user_config_key'),
        Index('idx_app_config_user_key', 'user_id', 'config_key'),
    )

    def __repr__(self) -> str:
        return f"<AppConfig(user_id={self.user_id}, key={self.config_key})>"
