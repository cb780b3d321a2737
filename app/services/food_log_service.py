import logging
from datetime import date, datetime, time, timedelta
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.errors import ValidationError
from app.models.food_log import FoodLog
from app.services.storage_service import ImageStorage, image_storage

logger = logging.getLogger(__name__)

NUTRIENT_FIELDS = ("energy", "protein", "fat", "carbs", "sugar", "sodium_mg", "calcium_mg", "vitaminc_mg")


class FoodLogService:
    def __init__(self, storage: ImageStorage = image_storage):
        self.storage = storage

    async def save_food_log(
        self,
        db: AsyncSession,
        image_bytes: bytes,
        content_type: Optional[str],
        food_name: str,
        calories: Optional[str] = None,
        risk_level: Optional[str] = None,
        risk_comment: Optional[str] = None,
        nutrients: Optional[dict] = None,
    ) -> FoodLog:
        """
        이미지를 저장소에 올린 뒤 식단 기록을 저장합니다.
        DB 저장이 실패하면 올린 이미지도 정리합니다.
        """
        if not image_bytes:
            raise ValidationError("이미지 파일을 업로드해주세요.")
        if not food_name or not food_name.strip():
            raise ValidationError("음식 이름이 필요합니다.")

        image_url = await self.storage.upload(image_bytes, content_type)

        values = {k: v for k, v in (nutrients or {}).items() if k in NUTRIENT_FIELDS}
        new_entry = FoodLog(
            food_name=food_name.strip(),
            image_url=image_url,
            calories=calories,
            risk_level=risk_level or None,
            risk_comment=risk_comment or None,
            **values,
        )
        try:
            db.add(new_entry)
            await db.commit()
            await db.refresh(new_entry)
        except Exception:
            await db.rollback()
            await self._delete_image(image_url)
            raise

        logger.info(f"✅ 식단 기록 저장: ID={new_entry.id}, 음식={new_entry.food_name}")
        return new_entry

    async def get_food_logs(self, db: AsyncSession, day: Optional[date] = None, limit: int = 200) -> List[FoodLog]:
        """
        최근 순으로 조회합니다.
        day가 있으면 해당 날짜(UTC) 기록을 개수 제한 없이 모두 돌려줍니다 (하루 합계 계산용).
        """
        stmt = select(FoodLog)
        if day is not None:
            day_start = datetime.combine(day, time.min)
            stmt = stmt.where(
                FoodLog.created_at >= day_start,
                FoodLog.created_at < day_start + timedelta(days=1),
            )
        stmt = stmt.order_by(FoodLog.created_at.desc(), FoodLog.id.desc())
        if day is None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def _delete_image(self, image_url: str):
        # 저장소 삭제 실패는 기록만 남기고 진행
        try:
            await self.storage.delete(image_url)
        except OSError as e:
            logger.error(f"⚠️ 이미지 삭제 실패 (무시하고 진행): {image_url} - {e}")

    async def delete_food_log(self, db: AsyncSession, log_id: int) -> bool:
        entry = await db.get(FoodLog, log_id)
        if entry is None:
            return False

        await self._delete_image(entry.image_url)

        await db.delete(entry)
        await db.commit()
        logger.info(f"🗑️ 식단 기록 삭제: ID={log_id}")
        return True


food_log_service = FoodLogService()
