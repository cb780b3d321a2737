import asyncio
import logging

import openai
from langchain_openai import ChatOpenAI

from app.core import config
from app.core.errors import UpstreamMalformed, UpstreamRejected, UpstreamTimeout

logger = logging.getLogger(__name__)


def build_chat_model(model: str, temperature: float = 0, max_tokens: int = 500) -> ChatOpenAI:
    """API 키를 먼저 확인한 뒤 ChatOpenAI 클라이언트를 만듭니다."""
    return ChatOpenAI(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        api_key=config.get_openai_api_key(),
        base_url=config.get_openai_api_base(),
        timeout=config.LLM_TIMEOUT_SECONDS,
        max_retries=0,  # 재시도는 호출하는 쪽에서 결정
    )


async def ainvoke_text(llm, messages, step: str, timeout: float = None) -> str:
    """
    LLM을 호출하고 응답 텍스트를 돌려줍니다.
    시간 초과 / 거절(상태 코드) / 빈 응답을 각각 다른 오류로 구분합니다.
    """
    timeout = timeout or config.LLM_TIMEOUT_SECONDS
    try:
        response = await asyncio.wait_for(llm.ainvoke(messages), timeout=timeout)
    except (asyncio.TimeoutError, openai.APITimeoutError) as e:
        logger.error(f"⏱️ [{step}] OpenAI 응답 시간 초과: {e}")
        raise UpstreamTimeout(f"{step} 응답 시간 초과") from e
    except openai.APIStatusError as e:
        logger.error(f"❌ [{step}] OpenAI API 오류: {e.status_code} {e}")
        raise UpstreamRejected(f"{step} 호출 실패 ({e.status_code})", status=e.status_code) from e
    except openai.APIConnectionError as e:
        logger.error(f"❌ [{step}] OpenAI 연결 실패: {e}")
        raise UpstreamRejected(f"{step} 연결 실패") from e

    content = getattr(response, "content", None)
    if not isinstance(content, str) or not content.strip():
        logger.error(f"❌ [{step}] 빈 응답: {response!r}")
        raise UpstreamMalformed(f"{step} 응답 내용이 비어 있습니다.")
    return content.strip()
