"""
Drop-out Predictor.

Estimates, mid-survey, the probability that a respondent abandons the survey,
buckets it into a risk level and suggests a UI intervention.

Rule path: start from ``baseProbability`` and multiply by one factor per signal.

    Factor          Signal                                   Multiplier range
    -------------   --------------------------------------   ----------------
    progress        mean(page ratio, question ratio)         1.5 .. 0.3
    time_spent      time / (answered * expected per q)       1.4 .. 0.9
    device_type     mobile / tablet / desktop                settings / 1.0
    time_of_day     peak / night / lunch / off-peak          1.25 .. 0.95
    day_of_week     weekend / Mon / Fri / mid-week           1.1 .. 0.95
    survey_length   total question count                     1.4 .. 0.7
    historical      previous drop-outs (only when > 0)       1.2, 1.3 + 0.1(n-2)

Each factor is also reported with an impact in [-1, 1] and a description, so
the survey owner can see why a respondent was considered at risk. The product
is clamped to [0, 1].

Intervention table (disabled interventions or LOW risk -> NONE):

    CRITICAL -> SAVE_PROGRESS
    HIGH     -> TIME_ESTIMATE if question progress > 0.5 else ENCOURAGEMENT
    MEDIUM   -> PROGRESS_BAR  if question progress > 0.3 else SIMPLIFY

The intervention message is drawn at random from the type's pool; everything
else is deterministic.
"""

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from survey_ml.models.enums import InterventionType, RiskLevel
from survey_ml.models.feature_settings import DropoutSettings
from survey_ml.models.schemas import (
    DropoutFactor,
    DropoutPredictionInput,
    DropoutPredictionResult,
    SuggestedIntervention,
)
from survey_ml.providers.base import PredictionResult
from survey_ml.services.detector_base import ProviderBackedDetector, clamp, coerce_number


logger = logging.getLogger(__name__)


INTERVENTION_MESSAGES: Dict[InterventionType, List[str]] = {
    InterventionType.NONE: [],
    InterventionType.PROGRESS_BAR: [
        "You're making great progress!",
        "Almost there! Just a few more questions.",
        "You're halfway through!",
    ],
    InterventionType.ENCOURAGEMENT: [
        "Your feedback is really valuable to us!",
        "Thank you for taking the time to share your thoughts.",
        "Every answer helps us improve!",
    ],
    InterventionType.SIMPLIFY: [
        "Feel free to skip questions you're unsure about.",
        "Short answers are perfectly fine!",
    ],
    InterventionType.SAVE_PROGRESS: [
        "Your progress has been saved. You can continue later if needed.",
        "Don't worry, we've saved your answers.",
    ],
    InterventionType.TIME_ESTIMATE: [
        "Just 2 more minutes to complete!",
        "Only 5 questions remaining.",
    ],
    InterventionType.BREAK_SUGGESTION: [
        "Taking a short break? Your progress is saved.",
        "Need a moment? We'll be here when you're ready.",
    ],
}

WEEKEND_DAYS = (0, 6)
DEFAULT_ML_PROBABILITY = 0.5
DEFAULT_ML_CONFIDENCE = 0.8


@dataclass
class Factor:
    """One multiplicative contribution to the drop-out probability."""
    name: str
    multiplier: float
    impact: float
    description: str

    def as_schema(self) -> DropoutFactor:
        return DropoutFactor(
            factor=self.name,
            impact=clamp(self.impact, -1, 1),
            description=self.description,
        )


def _question_progress(data: DropoutPredictionInput) -> float:
    return data.questionsAnswered / data.totalQuestions


def _page_progress(data: DropoutPredictionInput) -> float:
    return data.currentPage / data.totalPages


def _is_mobile(device_type: str) -> bool:
    device = (device_type or '').lower()
    return 'mobile' in device or 'phone' in device


def _is_tablet(device_type: str) -> bool:
    device = (device_type or '').lower()
    return 'tablet' in device or 'ipad' in device


class DropoutPredictor(ProviderBackedDetector[DropoutSettings]):
    """Predicts respondent abandonment and suggests interventions."""

    def __init__(self, settings: Optional[DropoutSettings] = None, rng: Optional[random.Random] = None):
        super().__init__(settings or DropoutSettings())
        self.rng = rng or random.Random()

    async def predict(self, data: DropoutPredictionInput) -> DropoutPredictionResult:
        if self.uses_model:
            prediction = await self._predict_remote(self.extract_features(data))
            if prediction is not None:
                try:
                    return self.parse_prediction(prediction, data)
                except (TypeError, ValueError, ValidationError) as e:
                    logger.warning(f"Unusable dropout prediction from {self.model_name}, using rules: {e}")

        return self.predict_with_rules(data)

    # -------------------------------------------------------------------------
    # Rule-based path
    # -------------------------------------------------------------------------

    def predict_with_rules(self, data: DropoutPredictionInput) -> DropoutPredictionResult:
        factors = [
            self.progress_factor(_page_progress(data), _question_progress(data)),
            self.time_factor(data),
            self.device_factor(data.deviceType),
            self.time_of_day_factor(data.hourOfDay),
            self.day_of_week_factor(data.dayOfWeek),
            self.survey_length_factor(data.totalQuestions),
        ]
        if data.previousDropouts:
            factors.append(self.history_factor(data.previousDropouts))

        probability = self.settings.baseProbability
        for factor in factors:
            probability *= factor.multiplier
        probability = clamp(probability, 0, 1)

        risk = self.risk_level(probability)

        return DropoutPredictionResult(
            dropoutProbability=probability,
            riskLevel=risk,
            suggestedIntervention=self.choose_intervention(risk, data),
            confidence=self.confidence_for(data),
            factors=[f.as_schema() for f in factors],
            modelVersion=self.rule_model_version,
        )

    @staticmethod
    def progress_factor(page_progress: float, question_progress: float) -> Factor:
        progress = (page_progress + question_progress) / 2

        if progress < 0.1:
            return Factor('progress', 1.5, 0.5, 'Very early in survey - high dropout risk')
        if progress < 0.25:
            return Factor('progress', 1.3, 0.3, 'Early stage - elevated dropout risk')
        if progress < 0.5:
            return Factor('progress', 1.1, 0.1, 'Mid-survey - moderate completion expected')
        if progress < 0.75:
            return Factor('progress', 0.7, -0.3, 'Past halfway - good completion likelihood')
        return Factor('progress', 0.3, -0.7, 'Near completion - very likely to finish')

    def time_factor(self, data: DropoutPredictionInput) -> Factor:
        expected = data.questionsAnswered * self.settings.expectedTimePerQuestion
        ratio = data.timeSpentSoFar / max(expected, 1)

        if ratio < self.settings.fastThresholdMultiplier:
            return Factor('time_spent', 1.2, 0.2, 'Responding very quickly - possible disengagement')
        if ratio > self.settings.slowThresholdMultiplier:
            return Factor('time_spent', 1.4, 0.4, 'Taking much longer than expected - possible difficulty')
        if ratio > 2:
            return Factor('time_spent', 1.15, 0.15, 'Taking longer than average')
        return Factor('time_spent', 0.9, -0.1, 'Good pace - engaged respondent')

    def device_factor(self, device_type: str) -> Factor:
        if _is_mobile(device_type):
            return Factor(
                'device_type', self.settings.mobileDropoutMultiplier, 0.3,
                'Mobile device - higher dropout tendency',
            )
        if _is_tablet(device_type):
            return Factor(
                'device_type', self.settings.tabletDropoutMultiplier, 0.1,
                'Tablet device - slightly elevated dropout',
            )
        return Factor('device_type', 1.0, 0.0, 'Desktop device - typical completion rate')

    def time_of_day_factor(self, hour: int) -> Factor:
        if hour in self.settings.peakHours:
            return Factor('time_of_day', 0.95, -0.05, 'Peak engagement hour')
        if 0 <= hour < 6:
            return Factor('time_of_day', 1.25, 0.25, 'Late night hours - lower attention')
        if 12 <= hour < 14:
            return Factor('time_of_day', 1.1, 0.1, 'Lunch hours - slight distraction risk')
        return Factor('time_of_day', self.settings.offPeakMultiplier, 0.15, 'Off-peak hours')

    def day_of_week_factor(self, day: int) -> Factor:
        if day in WEEKEND_DAYS:
            return Factor(
                'day_of_week', self.settings.weekendMultiplier, 0.1,
                'Weekend - slightly lower completion',
            )
        if day == 1:
            return Factor('day_of_week', 1.05, 0.05, 'Monday - busy start of week')
        if day == 5:
            return Factor('day_of_week', 1.05, 0.05, 'Friday - end of week distraction')
        return Factor('day_of_week', 0.95, -0.05, 'Mid-week - good engagement')

    def survey_length_factor(self, total_questions: int) -> Factor:
        if total_questions <= 5:
            return Factor('survey_length', 0.7, -0.3, 'Very short survey - high completion expected')
        if total_questions <= 10:
            return Factor('survey_length', 0.85, -0.15, 'Short survey - good completion expected')
        if total_questions <= self.settings.longSurveyThreshold:
            return Factor('survey_length', 1.0, 0.0, 'Medium length survey')
        if total_questions <= 30:
            return Factor(
                'survey_length', self.settings.longSurveyMultiplier, 0.2,
                'Long survey - elevated dropout risk',
            )
        return Factor('survey_length', 1.4, 0.4, 'Very long survey - high dropout risk')

    @staticmethod
    def history_factor(previous_dropouts: int) -> Factor:
        if previous_dropouts == 1:
            return Factor('historical_behavior', 1.2, 0.2, 'One previous dropout')
        extra = (previous_dropouts - 2) * 0.1
        return Factor(
            'historical_behavior',
            1.3 + extra,
            min(1.0, 0.3 + extra),
            f"{previous_dropouts} previous dropouts - high risk",
        )

    def risk_level(self, probability: float) -> RiskLevel:
        if probability < self.settings.lowRiskThreshold:
            return RiskLevel.LOW
        if probability < self.settings.mediumRiskThreshold:
            return RiskLevel.MEDIUM
        if probability < self.settings.highRiskThreshold:
            return RiskLevel.HIGH
        return RiskLevel.CRITICAL

    def choose_intervention(self, risk: RiskLevel, data: DropoutPredictionInput) -> SuggestedIntervention:
        if not self.settings.enableInterventions or risk == RiskLevel.LOW:
            return SuggestedIntervention(type=InterventionType.NONE)

        progress = _question_progress(data)
        if risk == RiskLevel.CRITICAL:
            kind = InterventionType.SAVE_PROGRESS
        elif risk == RiskLevel.HIGH:
            kind = InterventionType.TIME_ESTIMATE if progress > 0.5 else InterventionType.ENCOURAGEMENT
        else:
            kind = InterventionType.PROGRESS_BAR if progress > 0.3 else InterventionType.SIMPLIFY

        messages = INTERVENTION_MESSAGES[kind]
        return SuggestedIntervention(
            type=kind,
            message=self.rng.choice(messages) if messages else None,
        )

    @staticmethod
    def confidence_for(data: DropoutPredictionInput) -> float:
        confidence = 0.6 + _question_progress(data) * 0.2
        if data.previousDropouts is not None:
            confidence += 0.1
        if data.timeSpentSoFar > 60:
            confidence += 0.05
        return min(confidence, 0.9)

    # -------------------------------------------------------------------------
    # Remote model path
    # -------------------------------------------------------------------------

    @staticmethod
    def extract_features(data: DropoutPredictionInput) -> Dict[str, Any]:
        return {
            'current_page': data.currentPage,
            'total_pages': data.totalPages,
            'page_progress': _page_progress(data),
            'questions_answered': data.questionsAnswered,
            'total_questions': data.totalQuestions,
            'question_progress': _question_progress(data),
            'time_spent_seconds': data.timeSpentSoFar,
            'avg_time_per_question': data.averageTimePerQuestion,
            'device_type': data.deviceType,
            'hour_of_day': data.hourOfDay,
            'day_of_week': data.dayOfWeek,
            'is_weekend': 1 if data.dayOfWeek in WEEKEND_DAYS else 0,
            'is_mobile': 1 if _is_mobile(data.deviceType) else 0,
            'previous_dropouts': data.previousDropouts or 0,
        }

    def parse_prediction(
        self,
        prediction: PredictionResult,
        data: DropoutPredictionInput,
    ) -> DropoutPredictionResult:
        """
        Convert a remote prediction into a result.

        Accepts a bare probability or an object with ``dropout_probability``
        (or ``probability``) and optional ``factors``. Risk level and
        intervention are always derived locally.
        """
        output = prediction.prediction
        probability = DEFAULT_ML_PROBABILITY
        factors: Optional[List[DropoutFactor]] = None

        if isinstance(output, dict):
            raw = output.get('dropout_probability')
            if raw is None:
                raw = output.get('probability')
            number = coerce_number(raw)
            if number is not None:
                probability = number
            if isinstance(output.get('factors'), list):
                factors = [DropoutFactor.model_validate(f) for f in output['factors']]
        else:
            number = coerce_number(output)
            if number is None:
                raise ValueError(f"Non-numeric dropout prediction: {output!r}")
            probability = number

        probability = clamp(probability, 0, 1)
        risk = self.risk_level(probability)

        return DropoutPredictionResult(
            dropoutProbability=probability,
            riskLevel=risk,
            suggestedIntervention=self.choose_intervention(risk, data),
            confidence=clamp(prediction.confidence or DEFAULT_ML_CONFIDENCE, 0, 1),
            factors=factors,
            modelVersion=self.model_name or self.rule_model_version,
        )
