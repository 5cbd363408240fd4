"""
Persons API — Weather Forecast Service
========================================

What:  Generates an illustrative five-day forecast of random data.
How:   Draws temperatures and summaries from a random source and summary list
       handed in by the caller. Nothing is shared through module globals, so
       tests can pass a seeded random.Random and a fixed list.
"""

import random
from datetime import date, timedelta
from typing import List, Optional, Sequence

from app.schemas.weather import WeatherForecast

MIN_TEMPERATURE_C = -20
MAX_TEMPERATURE_C = 54


class WeatherService:

    def __init__(self, rng: random.Random, summaries: Sequence[str]):
        self.rng = rng
        self.summaries = list(summaries)

    def forecast(self, days: int = 5, today: Optional[date] = None) -> List[WeatherForecast]:
        """Forecasts for today + 1 through today + days."""
        start = today or date.today()
        return [
            WeatherForecast.from_celsius(
                day=start + timedelta(days=offset),
                temperature_c=self.rng.randint(MIN_TEMPERATURE_C, MAX_TEMPERATURE_C),
                summary=self.rng.choice(self.summaries) if self.summaries else None,
            )
            for offset in range(1, days + 1)
        ]
