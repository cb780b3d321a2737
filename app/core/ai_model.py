import abc
import asyncio
import logging
import os
import threading
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence

import torch

from app.core import config
from app.core.errors import NotInitialized
from app.schemas.dtos import TopFactor
from app.services.normalizer import FEATURE_COUNT, FEATURE_NAMES, ScalerParams

logger = logging.getLogger(__name__)

# 캐스케이드 실행 순서 (순서 변경 금지: 각 단계가 이전 단계 확률을 피처로 받음)
RISK_STAGES = ("diabetes", "hypertension", "dyslipidemia", "osas")
SCALER_FILE = "scaler.json"


def get_device() -> str:
    """
    현재 실행 중인 컴퓨터의 하드웨어를 감지하여 추론 장치를 반환합니다.
    표 형식 모델이라 dtype은 항상 FP32를 사용합니다.
    """
    if torch.cuda.is_available():
        logger.info("✅ 하드웨어 감지: NVIDIA GPU (CUDA)")
        return "cuda"
    elif torch.backends.mps.is_available():
        logger.info("✅ 하드웨어 감지: Apple Silicon (MPS)")
        return "mps"
    else:
        logger.info("⚠️ 하드웨어 감지: GPU 없음 (CPU 사용)")
        return "cpu"


class RiskClassifier(abc.ABC):
    """이진 분류기 인터페이스. predict_proba는 [음성, 양성] 확률 분포를 돌려줍니다."""

    name = "classifier"

    @abc.abstractmethod
    async def predict_proba(self, features: Sequence[float]):
        raise NotImplementedError

    async def explain(self, features: Sequence[float], top_k: int = 3) -> List[TopFactor]:
        return []


class TorchRiskClassifier(RiskClassifier):
    def __init__(self, module: torch.nn.Module, name: str, device: str = "cpu"):
        self.module = module
        self.name = name
        self.device = device
        self.module.to(device)
        self.module.eval()

    def _to_tensor(self, features: Sequence[float], requires_grad: bool = False) -> torch.Tensor:
        return torch.tensor([list(features)], dtype=torch.float32, device=self.device, requires_grad=requires_grad)

    def _forward(self, features: Sequence[float]) -> torch.Tensor:
        with torch.no_grad():
            return self.module(self._to_tensor(features)).detach().cpu()

    def _attribute(self, features: Sequence[float], top_k: int) -> List[TopFactor]:
        # gradient x input: 기본 10개 피처가 양성 확률에 준 영향
        x = self._to_tensor(features, requires_grad=True)
        positive = self.module(x).reshape(-1)[1]
        (grad,) = torch.autograd.grad(positive, x)
        scores = (grad * x).detach().cpu().reshape(-1).tolist()[:FEATURE_COUNT]

        ranked = sorted(zip(FEATURE_NAMES, scores), key=lambda item: abs(item[1]), reverse=True)
        return [
            TopFactor(feature=name, value=round(abs(score), 4), impact="increase" if score > 0 else "decrease")
            for name, score in ranked[:top_k]
        ]

    async def predict_proba(self, features: Sequence[float]) -> torch.Tensor:
        # 이벤트 루프를 막지 않도록 스레드에서 추론
        return await asyncio.to_thread(self._forward, features)

    async def explain(self, features: Sequence[float], top_k: int = 3) -> List[TopFactor]:
        return await asyncio.to_thread(self._attribute, features, top_k)


class RiskModelBundle(NamedTuple):
    scaler: ScalerParams
    classifiers: Mapping[str, RiskClassifier]


def load_bundle(model_dir: str) -> RiskModelBundle:
    """디렉터리에서 스케일러와 네 개의 TorchScript 분류기를 읽습니다."""
    scaler_path = os.path.join(model_dir, SCALER_FILE)
    if not os.path.exists(scaler_path):
        raise NotInitialized(f"스케일러 파일을 찾을 수 없습니다: {scaler_path}")

    device = get_device()
    try:
        scaler = ScalerParams.from_file(scaler_path)
    except (ValueError, KeyError) as e:
        raise NotInitialized(f"스케일러 파일을 읽을 수 없습니다: {e}") from e

    classifiers: Dict[str, RiskClassifier] = {}
    for stage in RISK_STAGES:
        path = os.path.join(model_dir, f"{stage}.pt")
        if not os.path.exists(path):
            raise NotInitialized(f"{stage} 모델 파일을 찾을 수 없습니다: {path}")
        try:
            module = torch.jit.load(path, map_location=device)
        except RuntimeError as e:
            raise NotInitialized(f"{stage} 모델 로딩 실패: {e}") from e
        classifiers[stage] = TorchRiskClassifier(module, stage, device)
        logger.info(f"🧩 {stage} 모델 로드 완료 ({path})")

    return RiskModelBundle(scaler=scaler, classifiers=classifiers)


class RiskModelRegistry:
    """
    스케일러/모델 캐시. 한 번만 채워지고 이후에는 읽기 전용입니다.
    동시에 처음 접근해도 락 안에서 한 번만 로드합니다.
    """

    def __init__(self, model_dir: Optional[str] = None, bundle: Optional[RiskModelBundle] = None):
        self.model_dir = model_dir or config.RISK_MODEL_DIR
        self._bundle = bundle
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._bundle is not None

    def load(self) -> RiskModelBundle:
        if self._bundle is not None:
            return self._bundle
        with self._lock:
            if self._bundle is None:
                logger.info(f"🔄 위험도 예측 모델 로딩 중... ({self.model_dir})")
                self._bundle = load_bundle(self.model_dir)
                logger.info("✅ 위험도 예측 모델 로딩 완료")
        return self._bundle

    async def ensure_loaded(self) -> RiskModelBundle:
        if self._bundle is not None:
            return self._bundle
        return await asyncio.to_thread(self.load)

    def get(self) -> RiskModelBundle:
        """서비스 계층에서 모델을 호출할 때 사용합니다."""
        if self._bundle is None:
            raise NotInitialized("위험도 예측 모델이 아직 로드되지 않았습니다. 서버 실행 로그를 확인하세요.")
        return self._bundle


model_registry = RiskModelRegistry()
