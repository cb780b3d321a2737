# 질환 카탈로그 (단일 기준 테이블)
# 음식 인식 프롬프트, /diseases 응답, 위험도 예측/조언이 모두 이 표를 참조합니다.

from typing import Dict, Iterable, List, NamedTuple, Optional


class Disease(NamedTuple):
    id: str
    name: str
    description: str
    concerns: str
    risk_model: Optional[str] = None  # 위험도 예측 캐스케이드의 질환 키


DISEASES: List[Disease] = [
    Disease("htn", "고혈압", "혈압이 정상보다 높은 상태", "나트륨 함량이 높으면 위험", "hypertension"),
    Disease("dm", "당뇨병", "혈당이 정상보다 높은 상태", "당분과 탄수화물 함량이 높으면 위험", "diabetes"),
    Disease("dyslipidemia", "고지혈증", "혈중 지질 수치가 높은 상태", "포화지방과 콜레스테롤이 높으면 위험", "dyslipidemia"),
    Disease("obesity", "비만", "체질량지수가 높은 상태", "칼로리와 지방이 높으면 위험"),
    Disease("kidney", "신장질환", "신장 기능이 저하된 상태", "나트륨, 칼륨, 인이 높으면 위험"),
    Disease("liver", "간질환", "간 기능이 저하된 상태", "지방과 알코올이 많으면 위험"),
    Disease("gout", "통풍", "요산이 과다하게 축적되는 상태", "퓨린 함량이 높으면 위험"),
    Disease("osas", "수면무호흡증", "수면 중 호흡이 반복적으로 멈추는 상태", "과식과 늦은 밤 고열량 식사가 많으면 위험", "osas"),
]

DISEASES_BY_ID: Dict[str, Disease] = {d.id: d for d in DISEASES}
DISEASES_BY_RISK_MODEL: Dict[str, Disease] = {d.risk_model: d for d in DISEASES if d.risk_model}


def resolve_diseases(ids: Iterable[str]) -> List[Disease]:
    """
    카탈로그에 없는 id는 요청 전체를 실패시키지 않고 id 그대로 이름으로 사용합니다.
    """
    resolved = []
    seen = set()
    for raw in ids:
        key = raw.strip()
        if not key or key in seen:
            continue
        seen.add(key)
        resolved.append(DISEASES_BY_ID.get(key) or Disease(key, key, "", ""))
    return resolved


def disease_display_name(risk_model: str) -> str:
    disease = DISEASES_BY_RISK_MODEL.get(risk_model)
    return disease.name if disease else risk_model


def catalog_items() -> List[dict]:
    return [{"id": d.id, "name": d.name, "description": d.description} for d in DISEASES]
