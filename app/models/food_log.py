from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Float, Integer, String, Text

from app.core.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class FoodLog(Base):
    __tablename__ = "food_logs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    food_name = Column(String(100), nullable=False)
    image_url = Column(Text, nullable=False)
    calories = Column(String(50), nullable=True)  # "약 550 kcal" 같은 추정 문자열

    # 영양 성분 (선택)
    energy = Column(Float, nullable=True)
    protein = Column(Float, nullable=True)
    fat = Column(Float, nullable=True)
    carbs = Column(Float, nullable=True)
    sugar = Column(Float, nullable=True)
    sodium_mg = Column(Float, nullable=True)
    calcium_mg = Column(Float, nullable=True)
    vitaminc_mg = Column(Float, nullable=True)

    risk_level = Column(String(10), nullable=True)
    risk_comment = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
