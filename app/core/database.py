import logging
import os

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

# 1. 접속 정보 (DATABASE_URL이 있으면 그대로 사용, 없으면 RDS 변수로 조립)
RDS_USERNAME = os.getenv("RDS_USERNAME")
RDS_PASSWORD = os.getenv("RDS_PASSWORD")
RDS_HOST = os.getenv("RDS_HOST", "localhost")
RDS_PORT = os.getenv("RDS_PORT", "3306")
RDS_DB_NAME = os.getenv("RDS_DB_NAME", "food_risk_db")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql+aiomysql://{RDS_USERNAME}:{RDS_PASSWORD}@{RDS_HOST}:{RDS_PORT}/{RDS_DB_NAME}?charset=utf8mb4",
)


def engine_options(url: str) -> dict:
    """SQLite(로컬 개발)에는 커넥션 풀 옵션을 넘기지 않습니다."""
    options = {"echo": os.getenv("SQL_ECHO", "false").lower() == "true"}
    if make_url(url).get_backend_name() != "sqlite":
        options.update(pool_pre_ping=True, pool_size=10, max_overflow=20)
    return options


# 2. 엔진 / 세션 팩토리
engine = create_async_engine(DATABASE_URL, **engine_options(DATABASE_URL))
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def init_models():
    """food_logs 테이블이 없으면 생성합니다."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"💾 테이블 준비 완료: {', '.join(Base.metadata.tables)}")


# 3. FastAPI 의존성 주입
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session
