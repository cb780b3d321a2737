import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.core import config
from app.core.ai_model import model_registry
from app.core.database import init_models
from app.core.errors import PipelineError
from app.routers import food_logs, health, vision
from app.services.storage_service import PUBLIC_PREFIX

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# 1. 수명 주기(Lifespan) 관리: 서버 켜질 때 모델 로드
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 음식 위험도 분석 서버 시작 중...")

    async def initialize_data():
        try:
            logger.info("💾 식단 기록 테이블 확인 중...")
            await init_models()
            logger.info("✅ 데이터베이스 준비 완료")
        except Exception as e:
            logger.error(f"❌ 데이터베이스 초기화 중 오류 발생: {e}")

        try:
            await model_registry.ensure_loaded()
        except PipelineError as e:
            # 첫 요청에서 다시 로드를 시도함
            logger.error(f"❌ 위험도 예측 모델 로딩 실패: {e}")

    # 초기화 작업을 백그라운드 태스크로 시작
    init_task = asyncio.create_task(initialize_data())

    try:
        logger.info("✨ API 서비스 시작 준비 완료 (초기화는 백그라운드에서 진행 중)")
        yield
    finally:
        if not init_task.done():
            init_task.cancel()
        logger.info("👋 서버가 종료됩니다.")


# 2. 앱 생성
app = FastAPI(
    title="Food Risk AI Server",
    description="Food photo identification and cascaded health-risk prediction API",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 3. 오류 -> 사용자 메시지 (기술적인 내용은 로그에만)
@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    logger.error(f"❌ {request.method} {request.url.path} 실패: {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.user_message})


# 4. 라우터 등록
app.include_router(vision.router)
app.include_router(health.router)
app.include_router(food_logs.router)

app.mount(PUBLIC_PREFIX, StaticFiles(directory=config.STORAGE_DIR, check_dir=False), name="storage")


@app.get("/")
def health_check():
    return {"status": "ok", "msg": "Food Risk AI Ready", "model_loaded": model_registry.loaded}
