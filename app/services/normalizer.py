import json
import math
from typing import Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from app.core.errors import NotInitialized, ValidationError
from app.schemas.dtos import Gender, NutrientAggregate

# 캐스케이드 모델과 공유하는 고정 피처 순서
FEATURE_NAMES = (
    "gender", "age", "energy", "protein", "fat",
    "carbs", "sugar", "sodium_g", "calcium_g", "vitaminc_g",
)
FEATURE_COUNT = len(FEATURE_NAMES)

# mg 단위로 입력받아 g으로 바꾸는 영양소
MG_FIELDS = ("sodium_mg", "calcium_mg", "vitaminc_mg")

FeatureVector = Tuple[float, ...]


class ScalerParams(BaseModel):
    """학습 때 맞춘 표준화 파라미터. 로드 후에는 읽기 전용입니다."""
    model_config = ConfigDict(frozen=True)

    mean: Tuple[float, ...]
    scale: Tuple[float, ...]

    @field_validator("mean", "scale")
    @classmethod
    def _check_length(cls, v):
        if len(v) != FEATURE_COUNT:
            raise ValueError(f"{FEATURE_COUNT}개 값이 필요합니다 (받은 값: {len(v)}개)")
        if not all(math.isfinite(x) for x in v):
            raise ValueError("유한한 숫자만 허용됩니다")
        return v

    @field_validator("scale")
    @classmethod
    def _check_scale(cls, v):
        if any(x == 0 for x in v):
            raise ValueError("scale에 0이 포함될 수 없습니다")
        return v

    @classmethod
    def from_file(cls, path: str) -> "ScalerParams":
        # sklearn StandardScaler의 mean_ / scale_ 을 그대로 덤프한 JSON
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls(mean=data["mean"], scale=data["scale"])


def build_raw_features(gender: Gender, age: int, nutrients: NutrientAggregate) -> FeatureVector:
    """단위 변환까지만 적용한 원시 피처 (mg -> g)"""
    if nutrients is None:
        raise ValidationError("영양 성분 정보가 필요합니다.")
    return (
        float(Gender(gender).code),
        float(age),
        float(nutrients.energy),
        float(nutrients.protein),
        float(nutrients.fat),
        float(nutrients.carbs),
        float(nutrients.sugar),
        nutrients.sodium_mg / 1000,
        nutrients.calcium_mg / 1000,
        nutrients.vitaminc_mg / 1000,
    )


class FeatureNormalizer:
    def __init__(self, scaler: Optional[ScalerParams]):
        self._scaler = scaler

    @property
    def scaler(self) -> ScalerParams:
        if self._scaler is None:
            raise NotInitialized("스케일러 파라미터가 로드되지 않았습니다.")
        return self._scaler

    def standardize(self, raw: Sequence[float]) -> FeatureVector:
        scaler = self.scaler
        if len(raw) != FEATURE_COUNT:
            raise ValidationError(f"피처 개수가 올바르지 않습니다: {len(raw)}")
        return tuple((x - m) / s for x, m, s in zip(raw, scaler.mean, scaler.scale))

    def inverse(self, features: Sequence[float]) -> FeatureVector:
        scaler = self.scaler
        return tuple(x * s + m for x, m, s in zip(features, scaler.mean, scaler.scale))

    def transform(self, gender: Gender, age: int, nutrients: NutrientAggregate) -> FeatureVector:
        # 스케일러 확인을 먼저 해서 미초기화 상태를 입력 오류보다 우선 알림
        self.scaler
        return self.standardize(build_raw_features(gender, age, nutrients))
