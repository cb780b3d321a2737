"""
음식 인식 응답 파서

비전 모델은 아래 세 줄을 돌려주기로 약속되어 있습니다.

    음식: 된장찌개
    위험도: 주의 - 나트륨이 높습니다
    칼로리: 약 550 kcal

각 줄의 문법은 `[잡음 접두어]* 라벨 ':' 값` 입니다. 잡음 접두어(`1줄:`, 글머리표,
번호, 마크다운 강조)는 제거하고, 그 외의 어긋남은 추측하지 않고 형식 오류로 처리합니다.
"""

import re
from typing import Dict, Iterable, Optional

from app.core.errors import ResultNotFound, UpstreamMalformed
from app.schemas.dtos import RISK_LEVELS, FoodIdentificationResult

# 후보 음식 리스트 (이 중 하나 또는 NO_MATCH만 허용)
FOOD_CANDIDATES = (
    "된장찌개", "치킨", "커피", "김치찌개", "불고기",
    "비빔밥", "삼겹살", "김밥", "라면", "떡볶이",
    "순대", "피자", "햄버거", "스테이크", "파스타",
    "샐러드", "초밥", "우동", "카레", "만두",
)
NO_MATCH = "해당 사항 없음"

LABEL_FOOD = "음식"
LABEL_RISK = "위험도"
LABEL_CALORIES = "칼로리"

NOISE_PREFIX = re.compile(r"^(?:(?:\d+\s*줄\s*[:：.]?|[-*•·]+|\d+\s*[.)]|#+)\s*)+")
LABEL_LINE = re.compile(rf"^({LABEL_FOOD}|{LABEL_RISK}|{LABEL_CALORIES})\s*[:：]\s*(.*)$")
VALUE_QUOTES = "\"'`“”‘’"


def _strip_noise(line: str) -> str:
    line = line.replace("**", "").strip()
    return NOISE_PREFIX.sub("", line).strip()


def _clean_value(value: str) -> str:
    return value.strip().strip(VALUE_QUOTES).strip()


def _split_lines(text: str) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    unknown = []
    for raw_line in text.replace("```", "").splitlines():
        line = _strip_noise(raw_line)
        if not line:
            continue
        match = LABEL_LINE.match(line)
        if not match:
            unknown.append(raw_line)
            continue
        label, value = match.group(1), _clean_value(match.group(2))
        if label in fields:
            raise UpstreamMalformed(f"'{label}' 줄이 중복되었습니다.")
        fields[label] = value

    if not fields.get(LABEL_FOOD):
        raise ResultNotFound("응답에서 음식 이름을 찾지 못했습니다.")
    if unknown:
        raise UpstreamMalformed(f"약속되지 않은 줄이 포함되어 있습니다: {unknown}")
    return fields


def _is_no_match(food: str) -> bool:
    return food.replace(" ", "") == NO_MATCH.replace(" ", "")


def split_risk(value: str):
    """위험도 줄을 첫 번째 하이픈 기준으로 (판정, 이유)로 나눕니다."""
    verdict, _, comment = value.partition("-")
    return verdict.strip().strip("[]()"), comment.strip()


def parse_food_response(text: str, candidates: Optional[Iterable[str]] = None) -> FoodIdentificationResult:
    fields = _split_lines(text or "")
    food = fields[LABEL_FOOD].rstrip(".")

    if _is_no_match(food):
        return FoodIdentificationResult(food=NO_MATCH, matched=False)

    allowed = set(candidates if candidates is not None else FOOD_CANDIDATES)
    if food not in allowed:
        raise UpstreamMalformed(f"후보 리스트에 없는 음식입니다: {food}")

    risk_line = fields.get(LABEL_RISK)
    calories = fields.get(LABEL_CALORIES)
    if not risk_line:
        raise UpstreamMalformed("위험도 줄이 없습니다.")
    if not calories:
        raise UpstreamMalformed("칼로리 줄이 없습니다.")

    risk_level, risk_comment = split_risk(risk_line)
    if risk_level not in RISK_LEVELS:
        raise UpstreamMalformed(f"알 수 없는 위험도 판정입니다: {risk_level}")

    return FoodIdentificationResult(
        food=food,
        matched=True,
        risk_level=risk_level,
        risk_comment=risk_comment,
        calories=calories,
    )
