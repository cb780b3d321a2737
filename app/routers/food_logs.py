# 식단 기록 / 하루 칼로리 API

from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.dtos import DietSummaryRequest, DietSummaryResponse, FoodLogRead
from app.services.diet_service import summarize_day
from app.services.food_log_service import food_log_service

router = APIRouter(tags=["Food Log"])


@router.post("/food-logs", response_model=FoodLogRead)
async def save_food_log(
    file: UploadFile = File(...),
    food_name: str = Form(...),
    calories: Optional[str] = Form(None),
    risk_level: Optional[str] = Form(None),
    risk_comment: Optional[str] = Form(None),
    energy: Optional[float] = Form(None),
    protein: Optional[float] = Form(None),
    fat: Optional[float] = Form(None),
    carbs: Optional[float] = Form(None),
    sugar: Optional[float] = Form(None),
    sodium_mg: Optional[float] = Form(None),
    calcium_mg: Optional[float] = Form(None),
    vitaminc_mg: Optional[float] = Form(None),
    db: AsyncSession = Depends(get_db),
):
    """분석 결과를 사용자가 저장할 때 호출합니다."""
    nutrients = {
        "energy": energy, "protein": protein, "fat": fat, "carbs": carbs, "sugar": sugar,
        "sodium_mg": sodium_mg, "calcium_mg": calcium_mg, "vitaminc_mg": vitaminc_mg,
    }
    entry = await food_log_service.save_food_log(
        db,
        await file.read(),
        file.content_type,
        food_name=food_name,
        calories=calories,
        risk_level=risk_level,
        risk_comment=risk_comment,
        nutrients=nutrients,
    )
    return FoodLogRead.model_validate(entry)


@router.get("/food-logs", response_model=List[FoodLogRead])
async def get_food_logs(day: Optional[date] = None, db: AsyncSession = Depends(get_db)):
    rows = await food_log_service.get_food_logs(db, day=day)
    return [FoodLogRead.model_validate(row) for row in rows]


@router.delete("/food-logs/{log_id}")
async def delete_food_log(log_id: int, db: AsyncSession = Depends(get_db)):
    deleted = await food_log_service.delete_food_log(db, log_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="식단 기록을 찾을 수 없습니다.")
    return {"deleted": True}


@router.post("/diet/summary", response_model=DietSummaryResponse)
async def diet_summary(req: DietSummaryRequest, db: AsyncSession = Depends(get_db)):
    """하루 권장 칼로리 대비 섭취 칼로리"""
    day = req.day or datetime.now(timezone.utc).date()
    entries = await food_log_service.get_food_logs(db, day=day)
    return summarize_day(req.profile, entries, day)
