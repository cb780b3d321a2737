import asyncio
import logging
import math
from typing import List, Mapping, Optional, Sequence

import torch

from app.core import config
from app.core.ai_model import RISK_STAGES, RiskClassifier, RiskModelRegistry, model_registry
from app.core.errors import NotInitialized, UpstreamMalformed, UpstreamTimeout, ValidationError
from app.core.standards import ADVICE_RISK_THRESHOLD, get_risk_label
from app.schemas.dtos import Gender, NutrientAggregate, RiskAssessment
from app.services.normalizer import FEATURE_COUNT, FeatureNormalizer

logger = logging.getLogger(__name__)


def positive_probability(output, stage: str) -> float:
    """
    분류기 출력에서 양성 클래스(인덱스 1) 확률을 꺼냅니다.
    [2] 또는 [1, 2] 형태의 확률 분포가 아니면 형식 오류입니다.
    """
    try:
        probs = torch.as_tensor(output, dtype=torch.float64).reshape(-1)
    except (TypeError, ValueError, RuntimeError) as e:
        raise UpstreamMalformed(f"{stage} 모델 출력을 텐서로 변환할 수 없습니다: {e}") from e

    if probs.numel() != 2:
        raise UpstreamMalformed(f"{stage} 모델 출력 형태가 올바르지 않습니다: {tuple(torch.as_tensor(output).shape)}")

    values = probs.tolist()
    if not all(math.isfinite(p) and 0.0 <= p <= 1.0 for p in values):
        raise UpstreamMalformed(f"{stage} 모델 출력이 확률 범위를 벗어났습니다: {values}")
    if abs(sum(values) - 1.0) > 1e-3:
        raise UpstreamMalformed(f"{stage} 모델 출력의 합이 1이 아닙니다: {values}")
    return values[1]


class CascadeRiskScorer:
    """
    당뇨 -> 고혈압 -> 고지혈증 -> 수면무호흡 순서로 분류기를 이어서 실행합니다.
    각 단계는 앞 단계들의 양성 확률을 피처 뒤에 붙여 입력받습니다 (10 -> 11 -> 12 -> 13).
    한 단계라도 실패하면 부분 결과 없이 전체가 실패합니다.
    """

    def __init__(self, classifiers: Mapping[str, RiskClassifier], timeout: Optional[float] = None):
        self.classifiers = classifiers
        self.timeout = timeout if timeout is not None else config.MODEL_TIMEOUT_SECONDS

    async def _call(self, coro, stage: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeout(f"{stage} 모델 응답 시간 초과 ({self.timeout}s)") from e
        except RuntimeError as e:
            # 입력 차원 불일치 등 모델 내부 오류
            raise UpstreamMalformed(f"{stage} 모델 실행 실패: {e}") from e

    async def score(self, features: Sequence[float]) -> List[RiskAssessment]:
        if len(features) != FEATURE_COUNT:
            raise ValidationError(f"피처 개수가 올바르지 않습니다: {len(features)}")

        missing = [stage for stage in RISK_STAGES if stage not in self.classifiers]
        if missing:
            raise NotInitialized(f"분류기가 로드되지 않았습니다: {', '.join(missing)}")

        # 1. 네 단계를 순서대로 실행 (다음 단계는 이전 결과를 기다려야 함)
        stage_inputs = []
        risks = []
        current = list(features)
        for stage in RISK_STAGES:
            output = await self._call(self.classifiers[stage].predict_proba(tuple(current)), stage)
            risk = positive_probability(output, stage)
            logger.debug(f"   -> {stage}: {len(current)}개 피처, risk={risk:.4f}")
            stage_inputs.append(tuple(current))
            risks.append(risk)
            current.append(risk)

        # 2. 전체가 성공한 뒤에만 결과 구성 (위험 구간이면 중요 요인 포함)
        assessments = []
        for stage, stage_input, risk in zip(RISK_STAGES, stage_inputs, risks):
            top_factors = []
            if risk >= ADVICE_RISK_THRESHOLD:
                top_factors = await self._call(self.classifiers[stage].explain(stage_input), stage)
            assessments.append(RiskAssessment(
                disease=stage,
                risk=risk,
                label=get_risk_label(risk),
                top_factors=top_factors,
            ))
        return assessments


class RiskPredictionService:
    def __init__(self, registry: RiskModelRegistry = model_registry):
        self.registry = registry

    async def predict(self, gender: Gender, age: int, nutrients: NutrientAggregate) -> List[RiskAssessment]:
        bundle = await self.registry.ensure_loaded()
        features = FeatureNormalizer(bundle.scaler).transform(gender, age, nutrients)
        assessments = await CascadeRiskScorer(bundle.classifiers).score(features)
        logger.info("📊 위험도 예측 완료: " + ", ".join(f"{a.disease}={a.risk:.3f}" for a in assessments))
        return assessments


risk_service = RiskPredictionService()
