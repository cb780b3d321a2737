# 파이프라인 오류 분류
# 각 단계는 아래 타입으로 오류를 올리고, main.py의 핸들러가 사용자 메시지로 변환합니다.

from typing import Optional


class PipelineError(Exception):
    status_code = 500
    user_message = "알 수 없는 오류가 발생했습니다. 잠시 후 다시 시도해 주세요."


class ConfigurationError(PipelineError):
    """필수 설정(API 키, 엔드포인트)이 없음. 재시도하지 않습니다."""
    status_code = 500
    user_message = "서버 설정 오류입니다."


class ValidationError(PipelineError):
    """필수 입력 누락. 네트워크 호출 전에 거절합니다."""
    status_code = 400
    user_message = "입력값을 확인해주세요."

    def __init__(self, message: str):
        super().__init__(message)
        # 입력 오류는 그대로 보여줘도 되는 메시지
        self.user_message = message


class NotInitialized(PipelineError):
    """스케일러/모델 가중치가 아직 로드되지 않음."""
    status_code = 503
    user_message = "예측 모델이 아직 준비되지 않았습니다. 잠시 후 다시 시도해 주세요."


class UpstreamError(PipelineError):
    status_code = 502
    user_message = "AI 분석 중 오류가 발생했습니다."


class UpstreamRejected(UpstreamError):
    """외부 AI 서비스가 성공이 아닌 상태 코드로 응답함 (429 포함)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
        if status == 429:
            self.status_code = 429
            self.user_message = "요청이 너무 많습니다. 잠시 후 다시 시도해주세요."

    @property
    def rate_limited(self) -> bool:
        return self.status == 429


class UpstreamTimeout(UpstreamError):
    status_code = 504
    user_message = "AI 응답 시간이 초과되었습니다. 잠시 후 다시 시도해주세요."


class UpstreamMalformed(UpstreamError):
    """성공 응답이지만 약속된 형식(라벨 줄, 확률 텐서 등)과 맞지 않음."""
    user_message = "AI 응답을 해석하지 못했습니다. 다시 시도해주세요."


class ResultNotFound(UpstreamMalformed):
    """응답에서 음식 이름을 찾지 못함."""
    user_message = "AI 응답에서 결과를 찾지 못했습니다."
