import httpx
import openai
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.ai_model import RiskModelRegistry
from app.core.database import Base, get_db
from app.main import app
from app.services.advice_service import advice_service
from app.services.food_log_service import food_log_service
from app.services.risk_service import risk_service
from app.services.vision_service import vision_service

from tests.fakes import FakeLLM

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
VISION_REPLY = "음식: 김치찌개\n위험도: 위험 - 나트륨 함량이 매우 높습니다\n칼로리: 약 450 kcal"
PROFILE = {"age": 65, "gender": "male", "height_cm": 170, "weight_kg": 70}


@pytest.fixture
def vision_llm(monkeypatch):
    llm = FakeLLM(reply=VISION_REPLY)
    monkeypatch.setattr(vision_service, "_llm", llm)
    return llm


@pytest.fixture
def advice_llm(monkeypatch):
    llm = FakeLLM(reply="국물은 남기고 채소 반찬을 곁들여 드세요.")
    monkeypatch.setattr(advice_service, "_llm", llm)
    return llm


@pytest.fixture
def client(monkeypatch, db_url, storage, fake_bundle):
    # TestClient는 요청마다 이벤트 루프가 달라서 세션도 요청마다 만듦
    async def override_get_db():
        engine = create_async_engine(db_url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with async_sessionmaker(engine, expire_on_commit=False)() as session:
            yield session
        await engine.dispose()

    monkeypatch.setattr(risk_service, "registry", RiskModelRegistry(bundle=fake_bundle))
    monkeypatch.setattr(food_log_service, "storage", storage)
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(client, png_bytes, **form):
    return client.post(
        "/food-logs",
        files={"file": ("meal.png", png_bytes, "image/png")},
        data={"food_name": "김치찌개", "calories": "약 450 kcal", **form},
    )


def test_root(client):
    assert client.get("/").json()["status"] == "ok"


def test_list_diseases(client):
    items = client.get("/diseases").json()["items"]
    assert len(items) == 8
    assert {"id": "htn", "name": "고혈압"}.items() <= items[0].items()


class TestVisionEndpoint:

    def test_analyze(self, client, vision_llm, png_bytes):
        response = client.post(
            "/vision/analyze",
            files={"file": ("meal.png", png_bytes, "image/png")},
            data={"diseases": "htn,dm"},
        )
        assert response.status_code == 200
        assert response.json() == {
            "food": "김치찌개",
            "matched": True,
            "risk_level": "위험",
            "risk_comment": "나트륨 함량이 매우 높습니다",
            "calories": "약 450 kcal",
        }
        prompt = vision_llm.calls[0][0].content[0]["text"]
        assert "고혈압" in prompt and "당뇨병" in prompt

    def test_rejects_non_image(self, client, vision_llm):
        response = client.post(
            "/vision/analyze", files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "이미지 파일만 업로드 가능합니다."}
        assert vision_llm.calls == []

    def test_missing_api_key(self, client, monkeypatch, png_bytes):
        monkeypatch.setattr(vision_service, "_llm", None)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        response = client.post(
            "/vision/analyze", files={"file": ("meal.png", png_bytes, "image/png")},
        )
        assert response.status_code == 500
        assert response.json() == {"detail": "서버 설정 오류입니다."}

    def test_rate_limited(self, client, monkeypatch, png_bytes):
        error = openai.RateLimitError(
            "rate limited", response=httpx.Response(429, request=REQUEST), body=None,
        )
        monkeypatch.setattr(vision_service, "_llm", FakeLLM(error=error))
        response = client.post(
            "/vision/analyze", files={"file": ("meal.png", png_bytes, "image/png")},
        )
        assert response.status_code == 429
        assert "요청이 너무 많습니다" in response.json()["detail"]

    @pytest.mark.parametrize("reply", [
        "음식: 마라탕\n위험도: 안전\n칼로리: 700 kcal",
        "음식: 스테이크\n위험도: 보통 - 적당합니다\n칼로리: 700 kcal",
    ])
    def test_malformed_reply(self, client, monkeypatch, png_bytes, reply):
        monkeypatch.setattr(vision_service, "_llm", FakeLLM(reply=reply))
        response = client.post(
            "/vision/analyze", files={"file": ("meal.png", png_bytes, "image/png")},
        )
        assert response.status_code == 502
        assert response.json() == {"detail": "AI 응답을 해석하지 못했습니다. 다시 시도해주세요."}


class TestPredictEndpoint:

    PAYLOAD = {
        "gender": "female", "age": 58,
        "energy": 1800, "protein": 60, "fat": 55, "carbs": 250, "sugar": 40,
        "sodium_mg": 3200, "calcium_mg": 500, "vitaminc_mg": 60,
    }

    def test_predict(self, client):
        response = client.post("/predict", json=self.PAYLOAD)
        assert response.status_code == 200
        body = response.json()
        assert list(body) == ["diabetes", "hypertension", "dyslipidemia", "osas"]
        assert body["hypertension"]["label"] == "주의"
        assert body["hypertension"]["top_factors"][0]["feature"] == "sodium_g"
        assert body["diabetes"]["top_factors"] == []

    def test_missing_field(self, client):
        payload = dict(self.PAYLOAD)
        del payload["sodium_mg"]
        assert client.post("/predict", json=payload).status_code == 422

    def test_models_not_loaded(self, client, monkeypatch, tmp_path):
        monkeypatch.setattr(risk_service, "registry", RiskModelRegistry(model_dir=str(tmp_path / "none")))
        response = client.post("/predict", json=self.PAYLOAD)
        assert response.status_code == 503

    def test_health_advice(self, client, advice_llm):
        response = client.post("/health-advice", json={
            "disease": "고혈압", "risk": 0.72,
            "top_factors": [{"feature": "sodium_g", "value": 0.5, "impact": "increase"}],
        })
        assert response.status_code == 200
        assert response.json()["advice"].startswith("국물은")

    def test_health_advice_below_threshold(self, client, advice_llm):
        response = client.post("/health-advice", json={"disease": "고혈압", "risk": 0.1})
        assert response.json() == {"advice": ""}
        assert advice_llm.calls == []


class TestFoodLogEndpoints:

    def test_save_list_delete(self, client, png_bytes):
        saved = upload(client, png_bytes, sodium_mg="2100", risk_level="위험")
        assert saved.status_code == 200
        entry = saved.json()
        assert entry["sodium_mg"] == 2100
        assert entry["image_url"].startswith("http://testserver/storage/food-images/")

        listed = client.get("/food-logs").json()
        assert [row["id"] for row in listed] == [entry["id"]]

        assert client.delete(f"/food-logs/{entry['id']}").json() == {"deleted": True}
        assert client.get("/food-logs").json() == []

    def test_delete_missing(self, client):
        assert client.delete("/food-logs/12345").status_code == 404

    def test_save_requires_food_name(self, client, png_bytes):
        response = client.post(
            "/food-logs", files={"file": ("meal.png", png_bytes, "image/png")}, data={"food_name": "  "},
        )
        assert response.status_code == 400

    def test_list_other_day_is_empty(self, client, png_bytes):
        upload(client, png_bytes)
        assert client.get("/food-logs", params={"day": "2000-01-01"}).json() == []

    def test_diet_summary(self, client, png_bytes):
        upload(client, png_bytes)
        upload(client, png_bytes, calories="520kcal")
        summary = client.post("/diet/summary", json={"profile": PROFILE}).json()
        assert summary["daily_calories"] == 1915
        assert summary["consumed_calories"] == 970
        assert summary["percentage"] == 51
        assert summary["over_budget"] is False


class TestHealthReport:

    def test_report_with_advice(self, client, advice_llm, png_bytes):
        upload(client, png_bytes, energy="450", sodium_mg="2100")
        response = client.post("/health-report", json={"profile": PROFILE})
        assert response.status_code == 200
        body = response.json()

        assert body["nutrients"]["energy"] == 450
        assert body["nutrients"]["sodium_mg"] == 2100
        reports = {r["disease"]: r for r in body["reports"]}
        assert reports["hypertension"]["name"] == "고혈압"
        assert reports["hypertension"]["advice"].startswith("국물은")
        assert reports["diabetes"]["advice"] == ""
        assert len(advice_llm.calls) == 2

    def test_report_without_advice(self, client, advice_llm):
        response = client.post("/health-report", json={"profile": PROFILE, "with_advice": False})
        assert response.status_code == 200
        assert all(r["advice"] == "" for r in response.json()["reports"])
        assert advice_llm.calls == []
