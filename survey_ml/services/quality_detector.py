"""
Response Quality Detector.

Scores a completed survey response from 0 to 100 and recommends whether to
ACCEPT, REVIEW or REJECT it. Five independent checks each yield a penalty in
[0, 100] and, when triggered, a flag:

    Check             Question types considered                      Min answers
    ---------------   --------------------------------------------   -----------
    Speeding          all (uses total time / answer count)           1
    Straight-lining   MULTIPLE_CHOICE, RATING_SCALE, LIKERT_SCALE,   3
                      NPS, SLIDER
    Low variance      RATING_SCALE, SLIDER, NPS, NUMBER              3
    Gibberish         SHORT_TEXT, LONG_TEXT                          1
    Patterns          MULTIPLE_CHOICE, RATING_SCALE, LIKERT_SCALE    5

    qualityScore = clamp(100 - sum(weight[check] * penalty[check]), 0, 100)

A high-severity straight-lining flag also caps the score at the auto-reject
threshold: a respondent who gave the same answer to (nearly) every choice
question is rejected no matter how the other checks came out.

Recommendation bands are inclusive at both thresholds:
    score >= autoAcceptThreshold -> ACCEPT
    score <= autoRejectThreshold -> REJECT
    otherwise                    -> REVIEW

When a remote model is bound and ready, aggregate behavioural features are sent
to it instead and its score is used; any failure falls back to the rules.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
from pydantic import ValidationError

from survey_ml.models.enums import QualityFlagType, QuestionType, Recommendation, Severity
from survey_ml.models.feature_settings import QualitySettings
from survey_ml.models.schemas import (
    AnswerInput,
    QualityFlag,
    ResponseQualityInput,
    ResponseQualityResult,
)
from survey_ml.providers.base import PredictionResult
from survey_ml.services.detector_base import ProviderBackedDetector, clamp, coerce_number


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

CHOICE_TYPES = frozenset({
    QuestionType.MULTIPLE_CHOICE.value,
    QuestionType.RATING_SCALE.value,
    QuestionType.LIKERT_SCALE.value,
    QuestionType.NPS.value,
    QuestionType.SLIDER.value,
})

NUMERIC_TYPES = frozenset({
    QuestionType.RATING_SCALE.value,
    QuestionType.SLIDER.value,
    QuestionType.NPS.value,
    QuestionType.NUMBER.value,
})

TEXT_TYPES = frozenset({
    QuestionType.SHORT_TEXT.value,
    QuestionType.LONG_TEXT.value,
})

PATTERN_TYPES = frozenset({
    QuestionType.MULTIPLE_CHOICE.value,
    QuestionType.RATING_SCALE.value,
    QuestionType.LIKERT_SCALE.value,
})

MIN_STRAIGHT_LINE_ANSWERS = 3
MIN_VARIANCE_ANSWERS = 3
MIN_PATTERN_ANSWERS = 5

# Repeated character runs (5+) and common keyboard rows
KEYBOARD_MASH = re.compile(r'(.)\1{4,}|asdf|qwer|zxcv|hjkl', re.IGNORECASE)
VOWELS = re.compile(r'[aeiou]', re.IGNORECASE)
CONSONANTS = re.compile(r'[bcdfghjklmnpqrstvwxyz]', re.IGNORECASE)

DEFAULT_ML_SCORE = 50.0
DEFAULT_ML_CONFIDENCE = 0.8


@dataclass
class CheckResult:
    """Outcome of a single quality check."""
    penalty: float = 0.0
    flag: Optional[QualityFlag] = None

    @property
    def flagged(self) -> bool:
        return self.flag is not None


NOT_FLAGGED = CheckResult()


# =============================================================================
# Helpers
# =============================================================================

def _answer_key(value: Any) -> str:
    """Stable string form of an answer value for equality comparisons (4 == 4.0 == '4')."""
    number = coerce_number(value)
    if number is not None and not isinstance(value, str):
        return str(int(number)) if number.is_integer() else str(number)
    return str(value)


def _format_seconds(value: float) -> str:
    return f"{value:g}"


def recommend(score: float, settings: QualitySettings) -> Recommendation:
    if score >= settings.autoAcceptThreshold:
        return Recommendation.ACCEPT
    if score <= settings.autoRejectThreshold:
        return Recommendation.REJECT
    return Recommendation.REVIEW


def is_gibberish(text: str, min_text_length: int) -> bool:
    """
    Heuristic gibberish test for a single free-text answer.

    True when the text is shorter than min_text_length, contains keyboard
    mashing, has a consonant/vowel ratio above 8 or below 0.2, or averages
    more than 15 characters per word across more than one word.
    """
    if not text or len(text) < min_text_length:
        return True

    if KEYBOARD_MASH.search(text):
        return True

    vowels = len(VOWELS.findall(text))
    consonants = len(CONSONANTS.findall(text))
    if vowels > 0 and consonants > 0:
        ratio = consonants / vowels
        if ratio > 8 or ratio < 0.2:
            return True

    words = text.split()
    if len(words) > 1:
        avg_word_length = sum(len(w) for w in words) / len(words)
        if avg_word_length > 15:
            return True

    return False


def _straight_line_ratio(answers: List[AnswerInput]) -> float:
    if not answers:
        return 0.0
    counts = Counter(_answer_key(a.value) for a in answers)
    return max(counts.values()) / len(answers)


def _numeric_values(answers: List[AnswerInput]) -> List[float]:
    values = []
    for answer in answers:
        number = coerce_number(answer.value)
        if number is not None:
            values.append(number)
    return values


# =============================================================================
# Detector
# =============================================================================

class ResponseQualityDetector(ProviderBackedDetector[QualitySettings]):
    """Detects speeding, straight-lining, low variance, gibberish and answer patterns."""

    def __init__(self, settings: Optional[QualitySettings] = None):
        super().__init__(settings or QualitySettings())

    async def analyze(self, data: ResponseQualityInput) -> ResponseQualityResult:
        """Score a response, preferring the remote model when one is ready."""
        if self.uses_model:
            prediction = await self._predict_remote(self.extract_features(data))
            if prediction is not None:
                try:
                    return self.parse_prediction(prediction)
                except (TypeError, ValueError, ValidationError) as e:
                    logger.warning(f"Unusable quality prediction from {self.model_name}, using rules: {e}")

        return self.analyze_with_rules(data)

    # -------------------------------------------------------------------------
    # Rule-based path
    # -------------------------------------------------------------------------

    def analyze_with_rules(self, data: ResponseQualityInput) -> ResponseQualityResult:
        weights = self.settings.weights
        checks = [
            (self.check_speeding(data), weights.speeding),
            (self.check_straight_lining(data), weights.straightLining),
            (self.check_low_variance(data), weights.lowVariance),
            (self.check_gibberish(data), weights.gibberish),
        ]
        if self.settings.detectPatterns:
            checks.append((self.check_patterns(data), weights.patterns))

        flags = [check.flag for check, _ in checks if check.flagged]
        total_penalty = sum(check.penalty * weight for check, weight in checks if check.flagged)
        score = clamp(100 - total_penalty, 0, 100)

        if any(
            f.type == QualityFlagType.STRAIGHT_LINING.value and f.severity == Severity.HIGH
            for f in flags
        ):
            score = min(score, self.settings.autoRejectThreshold)

        return ResponseQualityResult(
            qualityScore=score,
            flags=flags,
            recommendation=recommend(score, self.settings),
            confidence=min(0.95, 0.7 + 0.05 * len(flags)),
            modelVersion=self.rule_model_version,
        )

    def check_speeding(self, data: ResponseQualityInput) -> CheckResult:
        question_count = len(data.answers)
        if question_count == 0:
            return NOT_FLAGGED

        total_time = data.metadata.totalTimeSpent
        avg_per_question = total_time / question_count
        min_total = self.settings.minimumTotalTimeSeconds
        min_per_question = self.settings.speedingThresholdSeconds

        penalty = 0.0
        severity = Severity.LOW

        if total_time < min_total * 0.5:
            penalty, severity = 80.0, Severity.HIGH
        elif total_time < min_total:
            penalty, severity = 50.0, Severity.MEDIUM

        if avg_per_question < min_per_question * 0.5:
            penalty, severity = max(penalty, 70.0), Severity.HIGH
        elif avg_per_question < min_per_question:
            penalty = max(penalty, 40.0)
            if severity != Severity.HIGH:
                severity = Severity.MEDIUM

        if penalty == 0:
            return NOT_FLAGGED

        return CheckResult(
            penalty=penalty,
            flag=QualityFlag(
                type=QualityFlagType.SPEEDING.value,
                severity=severity,
                message=(
                    f"Response completed too quickly ({_format_seconds(total_time)}s total, "
                    f"{avg_per_question:.1f}s avg per question)"
                ),
            ),
        )

    def check_straight_lining(self, data: ResponseQualityInput) -> CheckResult:
        choice_answers = [a for a in data.answers if a.questionType in CHOICE_TYPES]
        if len(choice_answers) < MIN_STRAIGHT_LINE_ANSWERS:
            return NOT_FLAGGED

        ratio = _straight_line_ratio(choice_answers)
        if ratio < self.settings.straightLiningThreshold:
            return NOT_FLAGGED

        if ratio >= 0.95:
            penalty, severity = 90.0, Severity.HIGH
        elif ratio >= 0.9:
            penalty, severity = 60.0, Severity.MEDIUM
        else:
            penalty, severity = 35.0, Severity.LOW

        return CheckResult(
            penalty=penalty,
            flag=QualityFlag(
                type=QualityFlagType.STRAIGHT_LINING.value,
                severity=severity,
                message=f"{ratio * 100:.0f}% of choice questions have the same answer",
            ),
        )

    def check_low_variance(self, data: ResponseQualityInput) -> CheckResult:
        values = _numeric_values([a for a in data.answers if a.questionType in NUMERIC_TYPES])
        if len(values) < MIN_VARIANCE_ANSWERS:
            return NOT_FLAGGED

        std_dev = float(np.std(values))
        if std_dev >= self.settings.minVarianceThreshold:
            return NOT_FLAGGED

        if std_dev < 0.1:
            penalty, severity = 70.0, Severity.HIGH
        elif std_dev < 0.3:
            penalty, severity = 45.0, Severity.MEDIUM
        else:
            penalty, severity = 25.0, Severity.LOW

        return CheckResult(
            penalty=penalty,
            flag=QualityFlag(
                type=QualityFlagType.LOW_VARIANCE.value,
                severity=severity,
                message=f"Very low variance in numeric responses (std dev: {std_dev:.2f})",
            ),
        )

    def check_gibberish(self, data: ResponseQualityInput) -> CheckResult:
        text_answers = [a for a in data.answers if a.questionType in TEXT_TYPES]
        if not text_answers:
            return NOT_FLAGGED

        affected = [
            a.questionId for a in text_answers
            if is_gibberish('' if a.value is None else str(a.value), self.settings.minTextLength)
        ]
        ratio = len(affected) / len(text_answers)
        if not affected or ratio < self.settings.gibberishThreshold:
            return NOT_FLAGGED

        if ratio >= 0.8:
            penalty, severity = 85.0, Severity.HIGH
        elif ratio >= 0.5:
            penalty, severity = 55.0, Severity.MEDIUM
        else:
            penalty, severity = 30.0, Severity.LOW

        return CheckResult(
            penalty=penalty,
            flag=QualityFlag(
                type=QualityFlagType.GIBBERISH.value,
                severity=severity,
                message=f"{len(affected)} of {len(text_answers)} text responses appear to be gibberish",
                affectedQuestions=affected,
            ),
        )

    def check_patterns(self, data: ResponseQualityInput) -> CheckResult:
        ordered = [_answer_key(a.value) for a in data.answers if a.questionType in PATTERN_TYPES]
        if len(ordered) < MIN_PATTERN_ANSWERS:
            return NOT_FLAGGED

        max_run = current_run = 1
        for previous, current in zip(ordered, ordered[1:]):
            current_run = current_run + 1 if current == previous else 1
            max_run = max(max_run, current_run)

        repeating = any(
            self._has_repeating_cycle(ordered, length) for length in range(2, 5)
        )
        limit = self.settings.maxConsecutiveSame

        if not repeating and max_run <= limit:
            return NOT_FLAGGED

        if repeating:
            penalty, severity = 75.0, Severity.HIGH
            message = 'Repeating answer pattern detected'
        elif max_run > limit + 3:
            penalty, severity = 65.0, Severity.HIGH
            message = f"{max_run} consecutive identical answers detected"
        else:
            penalty, severity = 40.0, Severity.MEDIUM
            message = f"{max_run} consecutive identical answers detected"

        return CheckResult(
            penalty=penalty,
            flag=QualityFlag(
                type=QualityFlagType.PATTERN_DETECTED.value,
                severity=severity,
                message=message,
            ),
        )

    @staticmethod
    def _has_repeating_cycle(values: List[str], length: int) -> bool:
        """True if the first ``length`` answers recur at 3+ aligned positions."""
        if len(values) < length * 2:
            return False
        cycle = values[:length]
        matches = sum(
            1 for start in range(0, len(values) - length + 1, length)
            if values[start:start + length] == cycle
        )
        return matches >= 3

    # -------------------------------------------------------------------------
    # Remote model path
    # -------------------------------------------------------------------------

    def extract_features(self, data: ResponseQualityInput) -> Dict[str, Any]:
        answers = data.answers
        total_time = data.metadata.totalTimeSpent
        choice_answers = [a for a in answers if a.questionType in CHOICE_TYPES]
        text_answers = [a for a in answers if a.questionType in TEXT_TYPES]
        numeric_values = _numeric_values([a for a in answers if a.questionType in NUMERIC_TYPES])

        text_lengths = [len('' if a.value is None else str(a.value)) for a in text_answers]

        return {
            'total_time_spent': total_time,
            'avg_time_per_question': total_time / len(answers) if answers else 0.0,
            'question_count': len(answers),
            'device_type': data.metadata.deviceType,
            'straight_line_ratio': _straight_line_ratio(choice_answers),
            'numeric_std_dev': float(np.std(numeric_values)) if len(numeric_values) > 1 else 0.0,
            'avg_text_length': float(np.mean(text_lengths)) if text_lengths else 0.0,
            'text_question_count': len(text_answers),
            'choice_question_count': len(choice_answers),
        }

    def parse_prediction(self, prediction: PredictionResult) -> ResponseQualityResult:
        """
        Convert a remote prediction into a result.

        Accepts a bare number (the score) or an object carrying
        ``quality_score``/``qualityScore`` and optional ``flags``.
        """
        output = prediction.prediction
        score = DEFAULT_ML_SCORE
        flags: List[QualityFlag] = []

        if isinstance(output, dict):
            raw_score = output.get('quality_score')
            if raw_score is None:
                raw_score = output.get('qualityScore')
            number = coerce_number(raw_score)
            if number is not None:
                score = number
            for raw_flag in output.get('flags') or []:
                flags.append(QualityFlag.model_validate(raw_flag))
        else:
            number = coerce_number(output)
            if number is None:
                raise ValueError(f"Non-numeric quality prediction: {output!r}")
            score = number

        score = clamp(score, 0, 100)
        confidence = clamp(prediction.confidence or DEFAULT_ML_CONFIDENCE, 0, 1)

        return ResponseQualityResult(
            qualityScore=score,
            flags=flags,
            recommendation=recommend(score, self.settings),
            confidence=confidence,
            modelVersion=self.model_name or self.rule_model_version,
        )
