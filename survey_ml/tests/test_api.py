"""
Test suite for the /ml-features HTTP surface.

The service is replaced through ``app.dependency_overrides`` so these tests
only cover routing, request validation, the response envelope and the
mapping of service errors to status codes.
"""

import copy
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from survey_ml.core.dependencies import get_ml_features_service
from survey_ml.core.errors import (
    ConfigNotFoundError,
    DuplicateConfigError,
    FeatureNotEnabledError,
    PredictionNotFoundError,
)
from survey_ml.main import app
from survey_ml.models.enums import FeatureType, InterventionType, Recommendation, RiskLevel, SentimentLabel
from survey_ml.models.schemas import (
    DropoutPredictionResult,
    FeatureConfig,
    QualityStats,
    ResponseQualityResult,
    SentimentResult,
    SuggestedIntervention,
)
from survey_ml.services.ml_features import MLFeaturesService


@pytest.fixture
def service() -> MagicMock:
    return MagicMock(spec=MLFeaturesService)


@pytest.fixture
def client(service: MagicMock) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_ml_features_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


QUALITY_BODY = {
    'responseId': 'resp_1',
    'surveyId': 'survey_1',
    'answers': [{'questionId': 'q1', 'questionType': 'RATING_SCALE', 'value': 4}],
    'metadata': {'totalTimeSpent': 60, 'deviceType': 'desktop'},
}

DROPOUT_BODY = {
    'responseId': 'resp_1',
    'surveyId': 'survey_1',
    'currentPage': 1,
    'totalPages': 5,
    'questionsAnswered': 2,
    'totalQuestions': 10,
    'timeSpentSoFar': 30,
    'averageTimePerQuestion': 15,
    'deviceType': 'desktop',
    'hourOfDay': 10,
    'dayOfWeek': 2,
}


# =============================================================================
# SCORING ENDPOINTS
# =============================================================================

class TestScoringEndpoints:

    def test_analyze_quality(self, client, service) -> None:
        service.analyze_quality.return_value = ResponseQualityResult(
            qualityScore=88, recommendation=Recommendation.REVIEW, confidence=0.7, configId='cfg_1',
        )

        response = client.post('/ml-features/quality/analyze?configId=cfg_1', json=QUALITY_BODY)

        assert response.status_code == 200
        body = response.json()
        assert body['success'] is True
        assert body['data']['recommendation'] == 'REVIEW'
        assert body['data']['configId'] == 'cfg_1'
        args = service.analyze_quality.await_args.args
        assert args[0].responseId == 'resp_1'
        assert args[1] == 'cfg_1'

    def test_quality_feature_disabled(self, client, service) -> None:
        service.analyze_quality.side_effect = FeatureNotEnabledError("Response quality feature is not enabled")

        response = client.post('/ml-features/quality/analyze', json=QUALITY_BODY)

        assert response.status_code == 400
        assert response.json() == {'success': False, 'message': 'Response quality feature is not enabled'}

    def test_invalid_body_is_422(self, client, service) -> None:
        response = client.post('/ml-features/quality/analyze', json={'responseId': 'resp_1'})

        assert response.status_code == 422
        service.analyze_quality.assert_not_called()

    @pytest.mark.parametrize("path,body,missing", [
        ('/ml-features/quality/analyze', QUALITY_BODY, ('answers',)),
        ('/ml-features/quality/analyze', QUALITY_BODY, ('metadata', 'deviceType')),
        ('/ml-features/dropout/predict', DROPOUT_BODY, ('deviceType',)),
    ])
    def test_missing_required_field_is_422(self, client, service, path, body, missing) -> None:
        payload = copy.deepcopy(body)
        target = payload
        for key in missing[:-1]:
            target = target[key]
        del target[missing[-1]]

        response = client.post(path, json=payload)

        assert response.status_code == 422
        assert list(response.json()['detail'][0]['loc'][1:]) == list(missing)
        service.analyze_quality.assert_not_called()
        service.predict_dropout.assert_not_called()

    def test_analyze_sentiment_passes_query_params(self, client, service) -> None:
        service.analyze_sentiment.return_value = SentimentResult(
            sentiment=SentimentLabel.NEGATIVE, score=-0.5, confidence=0.6,
        )

        response = client.post(
            '/ml-features/sentiment/analyze?surveyId=survey_1&answerId=ans_1',
            json={'text': 'Support was slow'},
        )

        assert response.status_code == 200
        assert response.json()['data']['sentiment'] == 'negative'
        kwargs = service.analyze_sentiment.await_args.kwargs
        assert kwargs == {'config_id': None, 'survey_id': 'survey_1', 'answer_id': 'ans_1'}

    def test_sentiment_batch(self, client, service) -> None:
        service.analyze_sentiment_batch.return_value = [
            SentimentResult(sentiment=SentimentLabel.POSITIVE, score=0.5, confidence=0.6, answerId='a1'),
            SentimentResult(sentiment=SentimentLabel.NEUTRAL, score=0.0, confidence=0.3, answerId='a2'),
        ]

        response = client.post('/ml-features/sentiment/analyze/batch', json={
            'inputs': [{'text': 'Great', 'answerId': 'a1'}, {'text': 'ok', 'answerId': 'a2'}],
        })

        assert response.status_code == 200
        assert [item['answerId'] for item in response.json()['data']] == ['a1', 'a2']
        assert len(service.analyze_sentiment_batch.await_args.args[0]) == 2

    def test_empty_batch_is_422(self, client) -> None:
        response = client.post('/ml-features/sentiment/analyze/batch', json={'inputs': []})

        assert response.status_code == 422

    def test_predict_dropout(self, client, service) -> None:
        service.predict_dropout.return_value = DropoutPredictionResult(
            dropoutProbability=0.3,
            riskLevel=RiskLevel.MEDIUM,
            suggestedIntervention=SuggestedIntervention(type=InterventionType.SIMPLIFY, message='Almost there'),
            confidence=0.62,
            predictionId='pred_1',
        )

        response = client.post('/ml-features/dropout/predict', json=DROPOUT_BODY)

        data = response.json()['data']
        assert data['riskLevel'] == 'medium'
        assert data['suggestedIntervention']['type'] == 'SIMPLIFY'
        assert data['predictionId'] == 'pred_1'

    def test_mark_intervention_shown(self, client, service) -> None:
        response = client.patch('/ml-features/dropout/intervention/pred_1')

        assert response.json() == {'success': True, 'message': 'Intervention marked as shown'}
        service.mark_intervention_shown.assert_awaited_once_with('pred_1')

    def test_mark_unknown_prediction(self, client, service) -> None:
        service.mark_intervention_shown.side_effect = PredictionNotFoundError("Dropout prediction ghost not found")

        response = client.patch('/ml-features/dropout/intervention/ghost')

        assert response.status_code == 404
        assert response.json()['success'] is False

    def test_stats(self, client, service) -> None:
        service.get_quality_stats.return_value = QualityStats(totalAnalyzed=3, averageScore=60)

        response = client.get('/ml-features/quality/stats/survey_1')

        assert response.json()['data']['totalAnalyzed'] == 3
        service.get_quality_stats.assert_awaited_once_with('survey_1')


# =============================================================================
# CONFIG ADMINISTRATION
# =============================================================================

class TestConfigEndpoints:

    def test_create_records_caller(self, client, service) -> None:
        service.create_config.return_value = FeatureConfig(
            id='cfg_1', featureType=FeatureType.SENTIMENT_ANALYSIS, name='Open text', createdBy='user_7',
        )

        response = client.post(
            '/ml-features/configs',
            json={'featureType': 'SENTIMENT_ANALYSIS', 'name': 'Open text'},
            headers={'X-User-Id': 'user_7'},
        )

        assert response.status_code == 201
        assert response.json()['data']['id'] == 'cfg_1'
        assert service.create_config.await_args.kwargs == {'created_by': 'user_7'}

    def test_create_without_caller(self, client, service) -> None:
        service.create_config.return_value = FeatureConfig(
            id='cfg_1', featureType=FeatureType.RESPONSE_QUALITY, name='Screen',
        )

        client.post('/ml-features/configs', json={'featureType': 'RESPONSE_QUALITY', 'name': 'Screen'})

        assert service.create_config.await_args.kwargs == {'created_by': None}

    def test_create_unknown_feature_type_is_422(self, client, service) -> None:
        response = client.post('/ml-features/configs', json={'featureType': 'CHURN', 'name': 'x'})

        assert response.status_code == 422
        service.create_config.assert_not_called()

    def test_duplicate_name_is_409(self, client, service) -> None:
        service.create_config.side_effect = DuplicateConfigError("A RESPONSE_QUALITY config named 'Screen' already exists")

        response = client.post('/ml-features/configs', json={'featureType': 'RESPONSE_QUALITY', 'name': 'Screen'})

        assert response.status_code == 409

    def test_missing_config_is_404(self, client, service) -> None:
        service.get_config.side_effect = ConfigNotFoundError("Feature config cfg_x not found")

        response = client.get('/ml-features/configs/cfg_x')

        assert response.status_code == 404
        assert response.json() == {'success': False, 'message': 'Feature config cfg_x not found'}

    def test_defaults_route_is_not_shadowed_by_config_id(self, client, service) -> None:
        service.get_default_settings.return_value = {'autoAcceptThreshold': 80}

        response = client.get('/ml-features/configs/defaults/RESPONSE_QUALITY')

        assert response.json()['data'] == {'autoAcceptThreshold': 80}
        service.get_default_settings.assert_called_once_with('RESPONSE_QUALITY')
        service.get_config.assert_not_called()

    def test_toggle(self, client, service) -> None:
        service.toggle_config.return_value = FeatureConfig(
            id='cfg_1', featureType=FeatureType.DROPOUT_PREDICTION, name='Risk', isEnabled=True,
        )

        response = client.patch('/ml-features/configs/cfg_1/toggle', json={'isEnabled': True})

        assert response.json()['data']['isEnabled'] is True
        service.toggle_config.assert_awaited_once_with('cfg_1', True)

    def test_delete_messages(self, client, service) -> None:
        config_response = client.delete('/ml-features/configs/cfg_1')
        override_response = client.delete('/ml-features/configs/cfg_1/overrides/survey_1')

        assert config_response.json() == {'success': True, 'message': 'Feature config deleted'}
        assert override_response.json() == {'success': True, 'message': 'Survey override deleted'}
        service.delete_override.assert_awaited_once_with('cfg_1', 'survey_1')

    def test_clear_cache(self, client, service) -> None:
        response = client.post('/ml-features/cache/clear')

        assert response.json() == {'success': True, 'message': 'Cache cleared'}
        service.clear_cache.assert_called_once_with()


# =============================================================================
# APPLICATION
# =============================================================================

class TestApplication:

    def test_health(self, client) -> None:
        assert client.get('/health').json() == {'status': 'healthy'}

    def test_unexpected_error_is_500_envelope(self, service) -> None:
        service.list_configs.side_effect = RuntimeError("boom")
        app.dependency_overrides[get_ml_features_service] = lambda: service
        try:
            response = TestClient(app, raise_server_exceptions=False).get('/ml-features/configs')
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json() == {'success': False, 'message': 'Internal server error'}
