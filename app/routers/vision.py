# 이미지 분석 API

from typing import List

from fastapi import APIRouter, File, Form, UploadFile

from app.schemas.dtos import FoodIdentificationResult
from app.services.vision_service import vision_service

router = APIRouter(prefix="/vision", tags=["Vision AI"])


def split_disease_ids(values: List[str]) -> List[str]:
    # diseases=htn&diseases=dm 또는 diseases=htn,dm 둘 다 허용
    ids = []
    for value in values:
        ids.extend(v.strip() for v in value.split(",") if v.strip())
    return ids


@router.post("/analyze", response_model=FoodIdentificationResult)
async def analyze_food(file: UploadFile = File(...), diseases: List[str] = Form(default=[])):
    """
    이미지를 업로드하면 음식 이름과 질환 기준 위험도, 칼로리를 분석하여 반환합니다.
    """
    image_bytes = await file.read()
    return await vision_service.identify(image_bytes, file.content_type, split_disease_ids(diseases))
