import re
from datetime import date
from typing import Iterable, Optional

from app.core.standards import calculate_daily_calories
from app.schemas.dtos import DietSummaryResponse, NutrientAggregate, UserProfile

CALORIE_NUMBER = re.compile(r"\d[\d,]*")


def parse_calories(text: Optional[str]) -> int:
    """ "약 550 kcal", "420kcal", "1,200 kcal" 에서 첫 번째 숫자를 꺼냅니다. 없으면 0."""
    if not text:
        return 0
    match = CALORIE_NUMBER.search(text)
    if not match:
        return 0
    return int(match.group(0).replace(",", ""))


def sum_consumed_calories(entries: Iterable) -> int:
    return sum(parse_calories(getattr(entry, "calories", None)) for entry in entries)


def aggregate_nutrients(entries: Iterable) -> NutrientAggregate:
    """
    하루치 식단 기록의 영양 성분 합계.
    energy 값이 없는 기록은 칼로리 추정 문자열로 대신합니다.
    """
    totals = dict.fromkeys(NutrientAggregate.model_fields, 0.0)
    for entry in entries:
        for field in totals:
            value = getattr(entry, field, None)
            if value is None and field == "energy":
                value = parse_calories(getattr(entry, "calories", None))
            totals[field] += float(value or 0)
    return NutrientAggregate(**totals)


def summarize_day(profile: UserProfile, entries: Iterable, day: date) -> DietSummaryResponse:
    daily = calculate_daily_calories(profile.age, profile.gender, profile.height_cm, profile.weight_kg)
    consumed = sum_consumed_calories(entries)
    percentage = min(round(consumed / daily * 100), 100) if daily > 0 else 0
    return DietSummaryResponse(
        day=day,
        daily_calories=daily,
        consumed_calories=consumed,
        percentage=percentage,
        over_budget=consumed > daily,
    )
