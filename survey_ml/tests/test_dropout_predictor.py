"""
Test suite for the Drop-out Predictor.

The tests verify:
1. The multiplicative rule model on a known input
2. Progress lowers risk, and device/time/length/history raise it
3. Risk bands and the intervention table
4. Deterministic interventions with a seeded random source
5. Remote predictions keep locally derived risk and intervention
"""

import random

import pytest

from survey_ml.models.enums import InterventionType, RiskLevel
from survey_ml.models.feature_settings import DropoutSettings
from survey_ml.providers.base import PredictionResult
from survey_ml.services.dropout_predictor import (
    INTERVENTION_MESSAGES,
    DropoutPredictor,
)


def _factor_names(result):
    return [f.factor for f in result.factors]


# =============================================================================
# RULE MODEL
# =============================================================================

class TestRuleModel:
    """Probability is base * product of factor multipliers, clamped to [0, 1]."""

    def test_known_input(self, dropout_input, seeded_rng) -> None:
        result = DropoutPredictor(rng=seeded_rng).predict_with_rules(dropout_input)

        # 0.3 * 1.3 (early) * 0.9 (pace) * 1.0 (desktop) * 0.95 (peak hour) * 0.95 (mid-week) * 1.0 (length)
        assert result.dropoutProbability == pytest.approx(0.3167775)
        assert result.riskLevel == RiskLevel.MEDIUM
        assert result.suggestedIntervention.type == InterventionType.SIMPLIFY
        assert result.confidence == pytest.approx(0.62)
        assert result.modelVersion == 'rule-based'
        assert _factor_names(result) == [
            'progress', 'time_spent', 'device_type', 'time_of_day', 'day_of_week', 'survey_length',
        ]

    def test_progress_lowers_probability(self, dropout_input) -> None:
        predictor = DropoutPredictor()
        late = dropout_input.model_copy(update={'currentPage': 10, 'questionsAnswered': 19})

        early_result = predictor.predict_with_rules(dropout_input)
        late_result = predictor.predict_with_rules(late)

        assert late_result.dropoutProbability < early_result.dropoutProbability
        assert late_result.riskLevel == RiskLevel.LOW
        assert late_result.suggestedIntervention.type == InterventionType.NONE
        assert late_result.suggestedIntervention.message is None

    def test_worst_case_is_clamped_and_critical(self, dropout_input) -> None:
        risky = dropout_input.model_copy(update={
            'deviceType': 'Mobile Safari',
            'hourOfDay': 2,
            'dayOfWeek': 6,
            'totalQuestions': 40,
        })

        result = DropoutPredictor().predict_with_rules(risky)

        assert result.dropoutProbability == 1.0
        assert result.riskLevel == RiskLevel.CRITICAL
        assert result.suggestedIntervention.type == InterventionType.SAVE_PROGRESS
        assert result.suggestedIntervention.message in INTERVENTION_MESSAGES[InterventionType.SAVE_PROGRESS]

    def test_history_factor_only_when_previous_dropouts(self, dropout_input) -> None:
        predictor = DropoutPredictor()

        without = predictor.predict_with_rules(dropout_input.model_copy(update={'previousDropouts': 0}))
        with_history = predictor.predict_with_rules(dropout_input.model_copy(update={'previousDropouts': 2}))

        assert 'historical_behavior' not in _factor_names(without)
        assert 'historical_behavior' in _factor_names(with_history)
        assert with_history.dropoutProbability == pytest.approx(without.dropoutProbability * 1.3)

    def test_confidence_rises_with_history_and_time(self, dropout_input) -> None:
        data = dropout_input.model_copy(update={'previousDropouts': 0, 'timeSpentSoFar': 90})

        assert DropoutPredictor.confidence_for(data) == pytest.approx(0.77)


class TestFactors:

    @pytest.mark.parametrize("page,question,multiplier", [
        (0.05, 0.05, 1.5),
        (0.2, 0.2, 1.3),
        (0.4, 0.4, 1.1),
        (0.6, 0.6, 0.7),
        (0.95, 0.95, 0.3),
    ])
    def test_progress_bands(self, page: float, question: float, multiplier: float) -> None:
        assert DropoutPredictor.progress_factor(page, question).multiplier == multiplier

    @pytest.mark.parametrize("previous,multiplier,impact", [
        (1, 1.2, 0.2),
        (2, 1.3, 0.3),
        (4, 1.5, 0.5),
        (12, 2.3, 1.0),
    ])
    def test_history_factor(self, previous: int, multiplier: float, impact: float) -> None:
        factor = DropoutPredictor.history_factor(previous)

        assert factor.multiplier == pytest.approx(multiplier)
        assert factor.impact == pytest.approx(impact)

    def test_device_multipliers_come_from_settings(self) -> None:
        predictor = DropoutPredictor(DropoutSettings(mobileDropoutMultiplier=2.0))

        assert predictor.device_factor('iPhone mobile').multiplier == 2.0
        assert predictor.device_factor('iPad').multiplier == pytest.approx(1.1)
        assert predictor.device_factor('desktop').multiplier == 1.0

    def test_slow_pace(self, dropout_input) -> None:
        slow = dropout_input.model_copy(update={'timeSpentSoFar': 200})

        factor = DropoutPredictor().time_factor(slow)

        assert factor.multiplier == pytest.approx(1.4)

    def test_survey_length_bands(self) -> None:
        predictor = DropoutPredictor()

        assert predictor.survey_length_factor(5).multiplier == 0.7
        assert predictor.survey_length_factor(10).multiplier == 0.85
        assert predictor.survey_length_factor(25).multiplier == pytest.approx(1.2)
        assert predictor.survey_length_factor(31).multiplier == 1.4


# =============================================================================
# RISK AND INTERVENTIONS
# =============================================================================

class TestRiskAndInterventions:

    @pytest.mark.parametrize("probability,expected", [
        (0.0, RiskLevel.LOW),
        (0.2499, RiskLevel.LOW),
        (0.25, RiskLevel.MEDIUM),
        (0.5, RiskLevel.HIGH),
        (0.75, RiskLevel.CRITICAL),
        (1.0, RiskLevel.CRITICAL),
    ])
    def test_risk_bands(self, probability: float, expected: RiskLevel) -> None:
        assert DropoutPredictor().risk_level(probability) == expected

    @pytest.mark.parametrize("risk,answered,expected", [
        (RiskLevel.HIGH, 15, InterventionType.TIME_ESTIMATE),
        (RiskLevel.HIGH, 2, InterventionType.ENCOURAGEMENT),
        (RiskLevel.MEDIUM, 10, InterventionType.PROGRESS_BAR),
        (RiskLevel.MEDIUM, 6, InterventionType.SIMPLIFY),
        (RiskLevel.LOW, 2, InterventionType.NONE),
    ])
    def test_intervention_table(self, dropout_input, risk, answered, expected) -> None:
        data = dropout_input.model_copy(update={'questionsAnswered': answered})

        assert DropoutPredictor().choose_intervention(risk, data).type == expected

    def test_interventions_can_be_disabled(self, dropout_input) -> None:
        predictor = DropoutPredictor(DropoutSettings(enableInterventions=False))

        intervention = predictor.choose_intervention(RiskLevel.CRITICAL, dropout_input)

        assert intervention.type == InterventionType.NONE

    def test_seeded_rng_makes_messages_reproducible(self, dropout_input) -> None:
        first = DropoutPredictor(rng=random.Random(7)).choose_intervention(RiskLevel.HIGH, dropout_input)
        second = DropoutPredictor(rng=random.Random(7)).choose_intervention(RiskLevel.HIGH, dropout_input)

        assert first.message == second.message
        assert first.message in INTERVENTION_MESSAGES[InterventionType.ENCOURAGEMENT]


# =============================================================================
# REMOTE MODEL PATH
# =============================================================================

class TestRemoteModel:

    @pytest.mark.asyncio
    async def test_model_probability_drives_local_risk(self, fake_provider, dropout_input) -> None:
        fake_provider.prediction = PredictionResult(prediction={'dropout_probability': 0.8}, confidence=0.6)
        predictor = DropoutPredictor()
        await predictor.bind_provider(fake_provider, 'dropout_model')

        result = await predictor.predict(dropout_input)

        assert result.dropoutProbability == pytest.approx(0.8)
        assert result.riskLevel == RiskLevel.CRITICAL
        assert result.suggestedIntervention.type == InterventionType.SAVE_PROGRESS
        assert result.factors is None
        assert result.modelVersion == 'dropout_model'
        assert fake_provider.requests[0].input['is_weekend'] == 0

    @pytest.mark.asyncio
    async def test_bare_number_prediction(self, fake_provider, dropout_input) -> None:
        fake_provider.prediction = PredictionResult(prediction='0.1')
        predictor = DropoutPredictor()
        await predictor.bind_provider(fake_provider, 'dropout_model')

        result = await predictor.predict(dropout_input)

        assert result.riskLevel == RiskLevel.LOW

    @pytest.mark.asyncio
    async def test_unusable_prediction_falls_back(self, fake_provider, dropout_input) -> None:
        fake_provider.prediction = PredictionResult(prediction=['unexpected'])
        predictor = DropoutPredictor()
        await predictor.bind_provider(fake_provider, 'dropout_model')

        result = await predictor.predict(dropout_input)

        assert result.modelVersion == 'rule-based'
        assert result.dropoutProbability == pytest.approx(0.3167775)
