"""Process-wide service singletons shared by routes and scheduler jobs."""

from typing import Optional

from fixturecast.etl.api_football import FootballAPIClient
from fixturecast.etl.football_data import FootballDataService
from fixturecast.predictions.service import PredictionService

_api_client: Optional[FootballAPIClient] = None
_data_service: Optional[FootballDataService] = None
_prediction_service: Optional[PredictionService] = None


def get_api_client() -> FootballAPIClient:
    global _api_client
    if _api_client is None:
        _api_client = FootballAPIClient()
    return _api_client


def get_data_service() -> FootballDataService:
    global _data_service
    if _data_service is None:
        _data_service = FootballDataService(get_api_client())
    return _data_service


def get_prediction_service() -> PredictionService:
    global _prediction_service
    if _prediction_service is None:
        _prediction_service = PredictionService(get_data_service())
    return _prediction_service


async def close_services() -> None:
    global _api_client, _data_service, _prediction_service
    if _prediction_service is not None:
        await _prediction_service.close()
    if _api_client is not None:
        await _api_client.close()
    _api_client = _data_service = _prediction_service = None
