# 위험도 -> 라벨 기준표 (연속 점수는 항상 저장하고, 라벨은 이 표로만 파생)
RISK_LABEL_THRESHOLDS = [
    (0.4, "안전"),
    (0.7, "주의"),
]
RISK_LABEL_MAX = "위험"

# 이 값 이상일 때만 중요 요인과 조언을 생성
ADVICE_RISK_THRESHOLD = 0.4

# 고령 사용자 기준 활동 계수
ACTIVITY_FACTOR = 1.3


def get_risk_label(risk: float) -> str:
    for upper, label in RISK_LABEL_THRESHOLDS:
        if risk < upper:
            return label
    return RISK_LABEL_MAX


def calculate_daily_calories(age: int, gender: str, height_cm: float, weight_kg: float) -> int:
    """Harris-Benedict 기초대사량에 활동 계수를 곱한 하루 권장 칼로리"""
    if gender == "male":
        bmr = 88.362 + 13.397 * weight_kg + 4.799 * height_cm - 5.677 * age
    else:
        bmr = 447.593 + 9.247 * weight_kg + 3.098 * height_cm - 4.330 * age
    return round(bmr * ACTIVITY_FACTOR)
