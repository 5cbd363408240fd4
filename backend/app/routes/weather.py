"""
Weather forecast route.

The WeatherService instance (with its random source and configured summary
list) lives on app.state and is created by create_app(). Override
get_weather_service to substitute another source.
"""

from typing import List

from fastapi import APIRouter, Depends, Request

from app.schemas.weather import WeatherForecast
from app.services.weather_service import WeatherService

router = APIRouter(tags=["Weather"])


def get_weather_service(request: Request) -> WeatherService:
    return request.app.state.weather_service


@router.get(
    "/weatherforecast",
    response_model=List[WeatherForecast],
    name="GetWeatherForecast",
    operation_id="GetWeatherForecast",
    summary="Five-day illustrative forecast",
)
async def get_weather_forecast(
    weather_service: WeatherService = Depends(get_weather_service),
) -> List[WeatherForecast]:
    return weather_service.forecast()
