import io

import pytest
from PIL import Image
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.ai_model import RiskModelBundle
from app.core.database import Base
from app.models.food_log import FoodLog  # noqa: F401  (테이블 등록)
from app.services.normalizer import FEATURE_COUNT, ScalerParams
from app.services.storage_service import ImageStorage

from tests.fakes import make_classifiers


@pytest.fixture
def identity_scaler():
    return ScalerParams(mean=[0.0] * FEATURE_COUNT, scale=[1.0] * FEATURE_COUNT)


@pytest.fixture
def fitted_scaler():
    return ScalerParams(
        mean=[0.5, 55.0, 1800.0, 65.0, 45.0, 280.0, 50.0, 3.2, 0.5, 0.08],
        scale=[0.5, 15.0, 600.0, 25.0, 20.0, 90.0, 30.0, 1.5, 0.25, 0.06],
    )


@pytest.fixture
def fake_bundle(identity_scaler):
    calls = []
    classifiers = make_classifiers([0.2, 0.55, 0.39, 0.4], calls)
    return RiskModelBundle(scaler=identity_scaler, classifiers=classifiers)


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (32, 24), color=(200, 120, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def storage(tmp_path):
    return ImageStorage(root_dir=str(tmp_path / "storage"), public_base_url="http://testserver")


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def db_session(db_url):
    engine = create_async_engine(db_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()
