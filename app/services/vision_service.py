import asyncio
import base64
import io
import logging
from typing import Iterable, List, Optional

from PIL import Image, UnidentifiedImageError
from langchain_core.messages import HumanMessage

from app.core import config
from app.core.diseases import Disease, resolve_diseases
from app.core.errors import ValidationError
from app.core.llm import ainvoke_text, build_chat_model
from app.schemas.dtos import FoodIdentificationResult
from app.services.food_parser import FOOD_CANDIDATES, NO_MATCH, parse_food_response

logger = logging.getLogger(__name__)

MAX_IMAGE_DIMENSION = 1024


def preprocess_image(image_bytes: bytes) -> Image.Image:
    """이미지 리사이징 및 RGB 변환"""
    try:
        image = Image.open(io.BytesIO(image_bytes)).convert("RGB")
    except UnidentifiedImageError as e:
        raise ValidationError("이미지 파일을 읽을 수 없습니다.") from e
    width, height = image.size

    # 너무 큰 이미지는 리사이징 (업로드 크기 절약 및 속도 향상)
    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        image.thumbnail((MAX_IMAGE_DIMENSION, MAX_IMAGE_DIMENSION), Image.Resampling.LANCZOS)

    return image


def to_data_url(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=90)
    return "data:image/jpeg;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def build_disease_context(diseases: List[Disease]) -> str:
    if not diseases:
        return "사용자는 특별한 질환이 없습니다."
    lines = []
    for d in diseases:
        lines.append(f"- {d.name}: {d.concerns}" if d.concerns else f"- {d.name}")
    return "사용자는 다음 질환을 가지고 있습니다.\n" + "\n".join(lines)


def build_prompt(diseases: List[Disease]) -> str:
    candidates = "\n".join(f"{i}. {name}" for i, name in enumerate(FOOD_CANDIDATES, start=1))
    return f"""이 음식 사진을 보고 아래 음식 리스트 중 하나를 골라, 사용자의 질환을 고려해 위험도와 칼로리를 알려줘.

{build_disease_context(diseases)}

음식 리스트:
{candidates}

출력 형식 (정확히 세 줄, 다른 말 없이):
음식: <음식 이름>
위험도: <안전/주의/위험 중 하나> - <한 문장 이유>
칼로리: <1인분 기준 추정치, 예: 약 550 kcal>

예시:
음식: 된장찌개
위험도: 주의 - 나트륨이 높습니다
칼로리: 약 550 kcal

규칙:
1) 음식 이름은 반드시 위 음식 리스트 중 하나의 이름을 그대로 써.
2) 사진 속 음식이 위 리스트와 전혀 관련이 없으면 '음식: {NO_MATCH}' 한 줄만 출력해.
3) 위험도는 사용자의 질환 기준으로 판단해."""


class FoodVisionService:
    def __init__(self, llm=None):
        self._llm = llm

    def _get_llm(self):
        if self._llm is None:
            # 키가 없으면 여기서 ConfigurationError (네트워크 호출 전)
            return build_chat_model(config.VISION_MODEL, temperature=0, max_tokens=200)
        return self._llm

    async def identify(
        self,
        image_bytes: bytes,
        content_type: Optional[str],
        disease_ids: Iterable[str] = (),
    ) -> FoodIdentificationResult:
        # 1. 입력 검증 (네트워크 호출 전에 거절)
        if not content_type or not content_type.startswith("image/"):
            raise ValidationError("이미지 파일만 업로드 가능합니다.")
        if not image_bytes:
            raise ValidationError("이미지 파일을 업로드해주세요.")

        llm = self._get_llm()

        # 2. 이미지 전처리 + 질환 컨텍스트 프롬프트
        image = await asyncio.to_thread(preprocess_image, image_bytes)
        diseases = resolve_diseases(disease_ids)
        message = HumanMessage(content=[
            {"type": "text", "text": build_prompt(diseases)},
            {"type": "image_url", "image_url": {"url": to_data_url(image)}},
        ])

        logger.info(f"📷 음식 인식 요청: {len(image_bytes)} bytes, 질환={[d.id for d in diseases]}")

        # 3. 호출 및 파싱
        output_text = await ainvoke_text(llm, [message], step="vision")
        logger.info(f"💡 비전 모델 응답: {output_text!r}")
        result = parse_food_response(output_text)
        logger.info(f"✅ 분석 완료: {result.food} ({result.risk_level or '-'})")
        return result


vision_service = FoodVisionService()
