import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import NotInitialized
from app.schemas.dtos import Gender, NutrientAggregate
from app.services.normalizer import (
    FEATURE_COUNT,
    FEATURE_NAMES,
    FeatureNormalizer,
    ScalerParams,
    build_raw_features,
)


@pytest.fixture
def nutrients():
    return NutrientAggregate(
        energy=2100.0, protein=70.0, fat=55.0, carbs=300.0, sugar=45.0,
        sodium_mg=3500.0, calcium_mg=600.0, vitaminc_mg=90.0,
    )


class TestRawFeatures:

    def test_fixed_order(self, nutrients):
        raw = build_raw_features(Gender.MALE, 64, nutrients)
        assert len(raw) == FEATURE_COUNT == len(FEATURE_NAMES)
        assert raw[:7] == (1.0, 64.0, 2100.0, 70.0, 55.0, 300.0, 45.0)

    def test_milligram_fields_divided_by_1000(self, nutrients):
        raw = build_raw_features(Gender.FEMALE, 40, nutrients)
        assert raw[7] == pytest.approx(3.5)
        assert raw[8] == pytest.approx(0.6)
        assert raw[9] == pytest.approx(0.09)

    def test_gram_fields_not_scaled(self, nutrients):
        raw = build_raw_features(Gender.FEMALE, 40, nutrients)
        assert raw[2:7] == (nutrients.energy, nutrients.protein, nutrients.fat, nutrients.carbs, nutrients.sugar)

    def test_gender_encoding(self, nutrients):
        assert build_raw_features(Gender.MALE, 30, nutrients)[0] == 1.0
        assert build_raw_features(Gender.FEMALE, 30, nutrients)[0] == 0.0
        assert build_raw_features("female", 30, nutrients)[0] == 0.0


class TestFeatureNormalizer:

    def test_standardize(self, fitted_scaler, nutrients):
        normalizer = FeatureNormalizer(fitted_scaler)
        features = normalizer.transform(Gender.MALE, 64, nutrients)
        raw = build_raw_features(Gender.MALE, 64, nutrients)
        for i in range(FEATURE_COUNT):
            expected = (raw[i] - fitted_scaler.mean[i]) / fitted_scaler.scale[i]
            assert features[i] == pytest.approx(expected)

    def test_inverse_recovers_every_slot(self, fitted_scaler, nutrients):
        normalizer = FeatureNormalizer(fitted_scaler)
        raw = build_raw_features(Gender.FEMALE, 71, nutrients)
        recovered = normalizer.inverse(normalizer.standardize(raw))
        for original, value in zip(raw, recovered):
            assert value == pytest.approx(original, rel=1e-9, abs=1e-9)

    def test_deterministic(self, fitted_scaler, nutrients):
        normalizer = FeatureNormalizer(fitted_scaler)
        assert normalizer.transform(Gender.MALE, 50, nutrients) == normalizer.transform(Gender.MALE, 50, nutrients)

    def test_not_initialized(self, nutrients):
        with pytest.raises(NotInitialized):
            FeatureNormalizer(None).transform(Gender.MALE, 50, nutrients)


class TestScalerParams:

    def test_wrong_length(self):
        with pytest.raises(PydanticValidationError):
            ScalerParams(mean=[0.0] * 9, scale=[1.0] * 9)

    def test_zero_scale(self):
        with pytest.raises(PydanticValidationError):
            ScalerParams(mean=[0.0] * 10, scale=[1.0] * 9 + [0.0])

    def test_immutable(self, fitted_scaler):
        with pytest.raises(PydanticValidationError):
            fitted_scaler.mean = (0.0,) * 10

    def test_from_file(self, tmp_path):
        path = tmp_path / "scaler.json"
        path.write_text(json.dumps({"mean": [1.0] * 10, "scale": [2.0] * 10}), encoding="utf-8")
        scaler = ScalerParams.from_file(str(path))
        assert scaler.mean == (1.0,) * 10
        assert scaler.scale == (2.0,) * 10
