"""
Sentiment Analyzer for free-text survey answers.

Classifies text as positive, negative, neutral or mixed with a score in [-1, 1],
optionally detecting emotions and extracting sentiment keywords.

Lexicon path (default):
    1. Text shorter than minTextLength -> neutral, score 0, confidence 0.3.
    2. Truncate to maxTextLength, lower-case, strip punctuation except ' and -,
       drop single-character tokens.
    3. Walk tokens left to right. A negation token arms the negation flag, an
       intensifier arms the multiplier, and the next lexicon word contributes
       weight * (negation weight if negated) * multiplier. Both modifiers reset
       after a lexicon word.
    4. score = clamp(sum / (2 * lexicon_hits), -1, 1)
    5. Category with threshold t = mixedSentimentThreshold:
           s > t -> positive; s < -t -> negative; |s| < t/2 -> neutral; else mixed

Remote path: when a model is bound and ready, the text plus context is sent to
the provider. String labels, numeric scores and structured objects are all
accepted; any failure falls back to the lexicon path.
"""

import asyncio
import logging
import re
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence

from survey_ml.models.enums import Emotion, SentimentLabel
from survey_ml.models.feature_settings import SentimentSettings
from survey_ml.models.schemas import SentimentContext, SentimentInput, SentimentResult
from survey_ml.providers.base import PredictionResult
from survey_ml.services.detector_base import ProviderBackedDetector, clamp, coerce_number


logger = logging.getLogger(__name__)


# =============================================================================
# Lexicons
# =============================================================================

POSITIVE_WORDS = frozenset({
    'good', 'great', 'excellent', 'amazing', 'wonderful', 'fantastic', 'love', 'like',
    'best', 'happy', 'pleased', 'satisfied', 'awesome', 'perfect', 'outstanding',
    'brilliant', 'superb', 'helpful', 'friendly', 'easy', 'quick', 'efficient',
    'recommend', 'impressed', 'enjoyable', 'positive', 'thanks', 'thank', 'appreciate',
    'beautiful', 'nice', 'lovely', 'valuable', 'useful', 'reliable', 'professional',
})

NEGATIVE_WORDS = frozenset({
    'bad', 'terrible', 'awful', 'horrible', 'poor', 'worst', 'hate', 'dislike',
    'disappointed', 'frustrating', 'annoying', 'difficult', 'slow', 'confusing',
    'unhappy', 'angry', 'upset', 'problem', 'issue', 'bug', 'broken', 'fail', 'failed',
    'useless', 'waste', 'expensive', 'overpriced', 'rude', 'unprofessional',
    'complicated', 'impossible', 'never', 'disgusting', 'ridiculous',
})

INTENSIFIERS = frozenset({
    'very', 'really', 'extremely', 'incredibly', 'absolutely', 'totally', 'completely',
    'highly', 'definitely', 'certainly', 'particularly', 'especially', 'exceptionally',
})

NEGATIONS = frozenset({
    'not', "n't", 'no', 'never', 'none', 'neither', 'nobody', 'nothing', 'nowhere',
    'hardly', 'barely', 'scarcely', 'without', "don't", "doesn't", "didn't", "won't",
})

EMOTION_KEYWORDS: Dict[str, frozenset] = {
    Emotion.JOY.value: frozenset({
        'happy', 'joy', 'delighted', 'pleased', 'excited', 'thrilled', 'wonderful',
    }),
    Emotion.ANGER.value: frozenset({
        'angry', 'furious', 'annoyed', 'frustrated', 'irritated', 'outraged',
    }),
    Emotion.SADNESS.value: frozenset({
        'sad', 'disappointed', 'unhappy', 'depressed', 'miserable', 'upset',
    }),
    Emotion.FEAR.value: frozenset({
        'afraid', 'scared', 'worried', 'anxious', 'nervous', 'concerned',
    }),
    Emotion.SURPRISE.value: frozenset({
        'surprised', 'amazed', 'astonished', 'shocked', 'unexpected',
    }),
    Emotion.DISGUST.value: frozenset({
        'disgusted', 'revolted', 'appalled', 'horrible', 'gross',
    }),
}

LABEL_ALIASES = {
    SentimentLabel.POSITIVE: {'positive', 'pos', '1', 'good'},
    SentimentLabel.NEGATIVE: {'negative', 'neg', '-1', 'bad'},
    SentimentLabel.NEUTRAL: {'neutral', '0', 'none'},
}

LABEL_SCORES = {
    SentimentLabel.POSITIVE: 0.7,
    SentimentLabel.NEGATIVE: -0.7,
    SentimentLabel.NEUTRAL: 0.0,
    SentimentLabel.MIXED: 0.1,
}

NON_WORD = re.compile(r"[^\w\s'-]")

MAX_KEYWORDS = 10
SHORT_TEXT_CONFIDENCE = 0.3
DEFAULT_ML_CONFIDENCE = 0.8
DEFAULT_BATCH_CONCURRENCY = 10


# =============================================================================
# Text Helpers
# =============================================================================

def tokenize(text: str) -> List[str]:
    """Lower-case, replace punctuation (except ' and -) with spaces, drop 1-char tokens."""
    return [word for word in NON_WORD.sub(' ', text.lower()).split() if len(word) > 1]


def normalize_label(label: str) -> SentimentLabel:
    normalized = str(label).strip().lower()
    for sentiment, aliases in LABEL_ALIASES.items():
        if normalized in aliases:
            return sentiment
    return SentimentLabel.MIXED


def extract_keywords(text: str) -> List[str]:
    """Unique lexicon words in order of first appearance, at most ten."""
    keywords = [w for w in tokenize(text) if w in POSITIVE_WORDS or w in NEGATIVE_WORDS]
    return list(dict.fromkeys(keywords))[:MAX_KEYWORDS]


# =============================================================================
# Analyzer
# =============================================================================

class SentimentAnalyzer(ProviderBackedDetector[SentimentSettings]):
    """Lexicon-based sentiment scoring with an optional remote model."""

    rule_model_version = 'lexicon-based'

    def __init__(self, settings: Optional[SentimentSettings] = None):
        super().__init__(settings or SentimentSettings())

    async def analyze(self, data: SentimentInput) -> SentimentResult:
        text = data.text or ''

        if len(text) < self.settings.minTextLength:
            return SentimentResult(
                sentiment=SentimentLabel.NEUTRAL,
                score=0.0,
                confidence=SHORT_TEXT_CONFIDENCE,
                emotions={} if self.settings.includeEmotions else None,
                keywords=[] if self.settings.extractKeywords else None,
                modelVersion=self.rule_model_version,
            )

        text = text[:self.settings.maxTextLength]

        if self.uses_model:
            prediction = await self._predict_remote(self.extract_features(text, data.context))
            if prediction is not None:
                try:
                    return self.parse_prediction(prediction, text)
                except (TypeError, ValueError) as e:
                    logger.warning(f"Unusable sentiment prediction from {self.model_name}, using lexicon: {e}")

        return self.analyze_with_lexicon(text)

    async def analyze_batch(
        self,
        inputs: Sequence[SentimentInput],
        concurrency: int = DEFAULT_BATCH_CONCURRENCY,
    ) -> List[SentimentResult]:
        """Analyze many texts with at most ``concurrency`` in flight; results keep input order."""
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def run(item: SentimentInput) -> SentimentResult:
            async with semaphore:
                return await self.analyze(item)

        return list(await asyncio.gather(*(run(item) for item in inputs)))

    # -------------------------------------------------------------------------
    # Lexicon path
    # -------------------------------------------------------------------------

    def analyze_with_lexicon(self, text: str) -> SentimentResult:
        weights = self.settings.lexiconWeights
        words = tokenize(text)

        total = 0.0
        hits = 0
        negated = False
        multiplier = 1.0
        emotion_counts: Counter = Counter()
        keywords: List[str] = []

        for word in words:
            if word in NEGATIONS:
                negated = True
                continue
            if word in INTENSIFIERS:
                multiplier = weights.intensifier
                continue

            word_score = 0.0
            if word in POSITIVE_WORDS:
                word_score = weights.positive
            elif word in NEGATIVE_WORDS:
                word_score = weights.negative

            if word_score:
                hits += 1
                keywords.append(word)
                if negated:
                    word_score *= weights.negation
                total += word_score * multiplier
                negated = False
                multiplier = 1.0

            if self.settings.includeEmotions:
                for emotion, emotion_words in EMOTION_KEYWORDS.items():
                    if word in emotion_words:
                        emotion_counts[emotion] += 1

        score = clamp(total / (hits * 2), -1, 1) if hits else 0.0

        emotions = None
        if self.settings.includeEmotions:
            peak = max(emotion_counts.values(), default=1)
            emotions = {emotion: count / peak for emotion, count in emotion_counts.items()}

        return SentimentResult(
            sentiment=self.score_to_label(score),
            score=score,
            confidence=self.confidence_for(len(words), hits),
            emotions=emotions,
            keywords=list(dict.fromkeys(keywords))[:MAX_KEYWORDS] if self.settings.extractKeywords else None,
            modelVersion=self.rule_model_version,
        )

    def score_to_label(self, score: float) -> SentimentLabel:
        threshold = self.settings.mixedSentimentThreshold
        if score > threshold:
            return SentimentLabel.POSITIVE
        if score < -threshold:
            return SentimentLabel.NEGATIVE
        if abs(score) < threshold * 0.5:
            return SentimentLabel.NEUTRAL
        return SentimentLabel.MIXED

    @staticmethod
    def confidence_for(word_count: int, sentiment_word_count: int) -> float:
        confidence = 0.5
        confidence += min(1.0, word_count / 50) * 0.2
        confidence += min(1.0, sentiment_word_count / 10) * 0.2
        return min(confidence, 0.85)

    # -------------------------------------------------------------------------
    # Remote model path
    # -------------------------------------------------------------------------

    @staticmethod
    def extract_features(text: str, context: Optional[SentimentContext] = None) -> Dict[str, Any]:
        features: Dict[str, Any] = {
            'text': text,
            'text_length': len(text),
            'word_count': len(text.split()),
        }
        if context is not None:
            if context.questionText:
                features['question_context'] = context.questionText
            if context.language:
                features['language'] = context.language
        return features

    def parse_prediction(self, prediction: PredictionResult, text: str) -> SentimentResult:
        """
        Convert a remote prediction into a result.

        Accepts a label string, a numeric score, or an object with
        ``sentiment``, ``score``, ``emotions`` and ``keywords``.
        """
        output = prediction.prediction
        label = SentimentLabel.NEUTRAL
        score = 0.0
        emotions: Optional[Dict[str, float]] = None
        keywords: Optional[List[str]] = None

        if isinstance(output, dict):
            if output.get('sentiment'):
                label = normalize_label(output['sentiment'])
            number = coerce_number(output.get('score'))
            score = clamp(number, -1, 1) if number is not None else LABEL_SCORES[label]
            if isinstance(output.get('emotions'), dict):
                emotions = {str(k): float(v) for k, v in output['emotions'].items()}
            if isinstance(output.get('keywords'), list):
                keywords = [str(k) for k in output['keywords']]
        elif isinstance(output, (int, float)) and not isinstance(output, bool):
            score = clamp(float(output), -1, 1)
            label = self.score_to_label(score)
        elif isinstance(output, str):
            label = normalize_label(output)
            score = LABEL_SCORES[label]
        else:
            raise ValueError(f"Unrecognized sentiment prediction: {output!r}")

        if keywords is None and self.settings.extractKeywords:
            keywords = extract_keywords(text)

        return SentimentResult(
            sentiment=label,
            score=score,
            confidence=clamp(prediction.confidence or DEFAULT_ML_CONFIDENCE, 0, 1),
            emotions=emotions,
            keywords=keywords,
            modelVersion=self.model_name or self.rule_model_version,
        )


# =============================================================================
# Aggregation
# =============================================================================

def aggregate_sentiment(results: Sequence[SentimentResult]) -> Dict[str, Any]:
    """
    Summarize a set of sentiment results.

    Returns:
        Dict with averageScore, sentimentDistribution (all four labels present),
        topEmotions (summed intensities, top 5) and topKeywords (top 10).
    """
    distribution = {label.value: 0 for label in SentimentLabel}
    emotion_totals: Counter = Counter()
    keyword_counts: Counter = Counter()

    for result in results:
        distribution[SentimentLabel(result.sentiment).value] += 1
        emotion_totals.update(result.emotions or {})
        keyword_counts.update(result.keywords or [])

    return {
        'averageScore': sum(r.score for r in results) / len(results) if results else 0.0,
        'sentimentDistribution': distribution,
        'topEmotions': [
            {'emotion': emotion, 'count': count}
            for emotion, count in emotion_totals.most_common(5)
        ],
        'topKeywords': [
            {'keyword': keyword, 'count': count}
            for keyword, count in keyword_counts.most_common(10)
        ],
    }
