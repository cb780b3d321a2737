import asyncio
import json
import logging
from typing import List, Sequence

from langchain_core.prompts import ChatPromptTemplate

from app.core import config
from app.core.diseases import disease_display_name
from app.core.llm import ainvoke_text, build_chat_model
from app.core.standards import ADVICE_RISK_THRESHOLD
from app.schemas.dtos import RiskAssessment, TopFactor

logger = logging.getLogger(__name__)


class HealthAdviceService:
    def __init__(self, llm=None):
        self._llm = llm

        self.prompt = ChatPromptTemplate.from_messages([
            ("system", "당신은 한국어로 답하는 전문 영양사이자 가정의학과 전문의입니다."),
            ("human", """역할: 너는 한국어로 답하는 전문 영양사 + 가정의학과 전문의이다.

아래는 어떤 사용자의 건강 위험도 예측 결과 중, 한 질환에 대한 정보이다.

- 질환명: {disease}
- 예측 위험도 (0~1): {risk}
- 중요 요인 (Top Factors):
{top_factors}

설명:
- value가 클수록 해당 피처가 이번 예측에서 중요했다는 의미이다.
- impact = "increase" 는 이 섭취 패턴이 해당 질환 위험도를 "올리는 방향"으로 작용했다는 뜻이다.
- impact = "decrease" 는 이 섭취 패턴이 위험도를 "낮추는 방향"으로 작용했다는 뜻이다.

요청 사항:
1. 사용자가 보기 쉽게, 짧고 명확한 한글 문장 2~4개로만 답해라.
2. "현재 {disease} 위험도가 어느 정도인지"를 한 문장으로 먼저 요약해라.
3. 이어서 중요 요인을 기반으로 구체적인 음식 이름을 넣어 식단/생활습관 추천 2~3가지를 써라.
   - impact = "increase" 인 피처는 줄이거나 조절하라는 방향으로 권고
   - impact = "decrease" 인 피처는 유지하거나 조금 더 강화해도 좋다는 방향으로 권고
4. 존댓말과 권유형 어조("~하시는 게 좋겠습니다")로 작성해라.

주의:
- JSON 그대로를 다시 출력하지 마라.
- 의료 진단이 아니라 "생활습관/식습관 조언"이라는 뉘앙스를 유지해라."""),
        ])

    def _get_llm(self):
        if self._llm is None:
            return build_chat_model(config.ADVICE_MODEL, temperature=0.7, max_tokens=500)
        return self._llm

    async def generate(self, disease: str, risk: float, top_factors: Sequence[TopFactor] = ()) -> str:
        """
        위험도가 기준(0.4) 미만이면 호출 없이 빈 문자열을 돌려줍니다.
        """
        if risk < ADVICE_RISK_THRESHOLD:
            return ""

        llm = self._get_llm()
        factors_json = json.dumps(
            [f.model_dump() for f in top_factors], ensure_ascii=False, indent=2
        )
        messages = self.prompt.format_messages(
            disease=disease,
            risk=round(risk, 3),
            top_factors=factors_json,
        )
        advice = await ainvoke_text(llm, messages, step=f"advice:{disease}")
        logger.info(f"📝 {disease} 조언 생성 완료 (risk={risk:.3f})")
        return advice

    async def generate_all(self, assessments: Sequence[RiskAssessment]) -> List[str]:
        """
        질환별 조언은 서로 독립적이므로 동시에 요청합니다.
        모든 요청이 끝난 뒤, 하나라도 실패했으면 첫 번째 오류를 올립니다.
        """
        results = await asyncio.gather(*[
            self.generate(disease_display_name(a.disease), a.risk, a.top_factors)
            for a in assessments
        ], return_exceptions=True)

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.error(f"❌ 조언 생성 실패: {len(errors)}/{len(results)}건")
            raise errors[0]
        return list(results)


advice_service = HealthAdviceService()
