"""
Base model classes and enums for the jewelry quote system.
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, declarative_base, mapped_column
from sqlalchemy.sql import func


# ID 컬럼 폭. 로컬에서 생성된 ID가 잘리지 않도록 넉넉하게 잡는다
ID_LENGTH = 200
USER_ID_LENGTH = 36


class ProductCategory(str, Enum):
    """상품 카테고리"""
    EARRING = "耳环/耳逼"
    CLASP = "扣子"
    JUMP_RING = "开口圈/闭口圈"
    ROUND_BEAD = "圆珠"
    CARVED_BEAD = "车花珠"
    STOPPER_BEAD = "定位珠/短管"
    BEAD_CAP = "包扣"
    TAG = "字印片/吊牌"
    EXTENDER_CHAIN = "延长链"
    HEAD_PIN = "珠针"
    HOLLOW_TUBE = "空心管"
    BEAD_CUP = "珠托"
    PENDANT_BAIL = "吊坠夹"
    SETTING = "镶嵌配件"
    PEARL_FINDING = "珍珠配件"
    GOLD_WIRE = "金线"
    GOLD_CHAIN = "金链"
    ACCESSORY = "配件"


class PurityTier(str, Enum):
    """금속 순도"""
    K10 = "10K"
    K14 = "14K"
    K18 = "18K"
    S925 = "925"


class GoldColor(str, Enum):
    """금 색상"""
    YELLOW = "黄金"
    WHITE = "白金"
    ROSE = "玫瑰金"
    SILVER = "银色"


class PriceKind(str, Enum):
    """가격 종류"""
    WHOLESALE = "wholesale"
    RETAIL = "retail"


class EntityType(str, Enum):
    """동기화 대상 엔티티"""
    PRODUCT = "product"
    PRICE_HISTORY = "price_history"


Base = declarative_base()


class BaseModel:
    """공통 기본 모델 믹스인"""

    id: Mapped[str] = mapped_column(
        String(ID_LENGTH),
        primary_key=True,
        default=lambda: str(uuid4())
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )
