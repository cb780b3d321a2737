import os
from dotenv import load_dotenv

from app.core.errors import ConfigurationError

load_dotenv()

# 모델 / 타임아웃 기본값
VISION_MODEL = os.getenv("VISION_MODEL", "gpt-4o-mini")
ADVICE_MODEL = os.getenv("ADVICE_MODEL", "gpt-4o-mini")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
MODEL_TIMEOUT_SECONDS = float(os.getenv("MODEL_TIMEOUT_SECONDS", "5"))

# 예측 모델 / 이미지 저장소 경로
RISK_MODEL_DIR = os.getenv("RISK_MODEL_DIR", os.path.join(os.getcwd(), "models", "risk"))
STORAGE_DIR = os.getenv("STORAGE_DIR", os.path.join(os.getcwd(), "storage"))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")


def get_openai_api_key() -> str:
    """LLM 호출 전에 API 키를 확인합니다. 없으면 네트워크 호출 없이 바로 실패합니다."""
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ConfigurationError("OPENAI_API_KEY가 설정되지 않았습니다.")
    return api_key


def get_openai_api_base():
    return os.getenv("OPENAI_API_BASE") or None
