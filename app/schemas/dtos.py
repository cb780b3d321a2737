# 데이터의 형태(DTO)를 정의

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# 음식 인식 응답의 위험도 라벨
RISK_LEVELS = ("안전", "주의", "위험")


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"

    @property
    def code(self) -> int:
        # 스케일러 학습 시 사용한 인코딩: male=1, female=0
        return 1 if self is Gender.MALE else 0


class UserProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    age: int = Field(gt=0)
    gender: Gender
    height_cm: float = Field(gt=0)
    weight_kg: float = Field(gt=0)


class NutrientAggregate(BaseModel):
    model_config = ConfigDict(frozen=True)

    energy: float = Field(ge=0)
    protein: float = Field(ge=0)
    fat: float = Field(ge=0)
    carbs: float = Field(ge=0)
    sugar: float = Field(ge=0)
    sodium_mg: float = Field(ge=0)
    calcium_mg: float = Field(ge=0)
    vitaminc_mg: float = Field(ge=0)


# [API] 위험도 예측 요청 (모든 필드 필수)
class HealthPredictRequest(NutrientAggregate):
    gender: Gender
    age: int = Field(gt=0)


class TopFactor(BaseModel):
    feature: str
    value: float  # 영향 크기 (절댓값)
    impact: str  # "increase" | "decrease"


class RiskAssessment(BaseModel):
    disease: str  # diabetes | hypertension | dyslipidemia | osas
    risk: float = Field(ge=0, le=1)
    label: str
    top_factors: List[TopFactor] = []


class DiseaseRisk(BaseModel):
    risk: float
    label: str
    top_factors: List[TopFactor] = []


# 음식 인식 결과
class FoodIdentificationResult(BaseModel):
    food: str
    matched: bool = True  # '해당 사항 없음'이면 False
    risk_level: str = ""
    risk_comment: str = ""
    calories: str = ""


# [API] 건강 조언 요청
class AdviceRequest(BaseModel):
    disease: str
    risk: float = Field(ge=0, le=1)
    top_factors: List[TopFactor] = []


class AdviceResponse(BaseModel):
    advice: str


class FoodLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    food_name: str
    image_url: str
    calories: Optional[str] = None
    energy: Optional[float] = None
    protein: Optional[float] = None
    fat: Optional[float] = None
    carbs: Optional[float] = None
    sugar: Optional[float] = None
    sodium_mg: Optional[float] = None
    calcium_mg: Optional[float] = None
    vitaminc_mg: Optional[float] = None
    risk_level: Optional[str] = None
    risk_comment: Optional[str] = None
    created_at: Optional[datetime] = None


# [API] 하루 권장 칼로리 요약
class DietSummaryRequest(BaseModel):
    profile: UserProfile
    day: Optional[date] = None


class DietSummaryResponse(BaseModel):
    day: date
    daily_calories: int
    consumed_calories: int
    percentage: int
    over_budget: bool


# [API] 식단 기록 기반 건강 리포트
class HealthReportRequest(BaseModel):
    profile: UserProfile
    day: Optional[date] = None
    with_advice: bool = True


class DiseaseReport(BaseModel):
    disease: str
    name: str
    risk: float
    label: str
    top_factors: List[TopFactor] = []
    advice: str = ""


class HealthReportResponse(BaseModel):
    day: date
    nutrients: NutrientAggregate
    reports: List[DiseaseReport]


PredictResponse = Dict[str, DiseaseRisk]
