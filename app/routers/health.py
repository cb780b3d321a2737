# 건강 위험도 예측 / 조언 API

from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.diseases import catalog_items, disease_display_name
from app.schemas.dtos import (
    AdviceRequest,
    AdviceResponse,
    DiseaseReport,
    DiseaseRisk,
    HealthPredictRequest,
    HealthReportRequest,
    HealthReportResponse,
    PredictResponse,
)
from app.services.advice_service import advice_service
from app.services.diet_service import aggregate_nutrients
from app.services.food_log_service import food_log_service
from app.services.risk_service import risk_service

router = APIRouter(tags=["Health Risk"])


def today() -> date:
    return datetime.now(timezone.utc).date()


@router.get("/diseases")
def list_diseases():
    return {"items": catalog_items()}


@router.post("/predict", response_model=PredictResponse)
async def predict(req: HealthPredictRequest):
    """
    하루 영양 섭취량과 성별/나이로 네 가지 질환 위험도를 예측합니다.
    """
    assessments = await risk_service.predict(req.gender, req.age, req)
    return {
        a.disease: DiseaseRisk(risk=a.risk, label=a.label, top_factors=a.top_factors)
        for a in assessments
    }


@router.post("/health-advice", response_model=AdviceResponse)
async def health_advice(req: AdviceRequest):
    advice = await advice_service.generate(req.disease, req.risk, req.top_factors)
    return AdviceResponse(advice=advice)


@router.post("/health-report", response_model=HealthReportResponse)
async def health_report(req: HealthReportRequest, db: AsyncSession = Depends(get_db)):
    """
    해당 날짜의 식단 기록을 합산해 위험도를 예측하고, 위험 구간 질환에 대한 조언을 함께 돌려줍니다.
    """
    day = req.day or today()
    entries = await food_log_service.get_food_logs(db, day=day)
    nutrients = aggregate_nutrients(entries)

    assessments = await risk_service.predict(req.profile.gender, req.profile.age, nutrients)
    if req.with_advice:
        advices = await advice_service.generate_all(assessments)
    else:
        advices = [""] * len(assessments)

    return HealthReportResponse(
        day=day,
        nutrients=nutrients,
        reports=[
            DiseaseReport(
                disease=a.disease,
                name=disease_display_name(a.disease),
                risk=a.risk,
                label=a.label,
                top_factors=a.top_factors,
                advice=advice,
            )
            for a, advice in zip(assessments, advices)
        ],
    )
