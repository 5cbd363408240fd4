"""Weather forecast response schema."""

from datetime import date as Date
from typing import Optional

from pydantic import BaseModel, Field


class WeatherForecast(BaseModel):
    """
    One day of the illustrative forecast.

    Wire names are camelCase (temperatureC, temperatureF); FastAPI serializes
    response models by alias. populate_by_name lets Python code use the
    snake_case field names.
    """
    date: Date = Field(description="Forecast day")
    temperature_c: int = Field(alias="temperatureC", description="Temperature in Celsius")
    temperature_f: int = Field(alias="temperatureF", description="Temperature in Fahrenheit")
    summary: Optional[str] = Field(default=None, description="One-word description")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_celsius(cls, day: Date, temperature_c: int, summary: Optional[str]) -> "WeatherForecast":
        """Builds a forecast, deriving Fahrenheit (truncated toward zero)."""
        return cls(
            date=day,
            temperature_c=temperature_c,
            temperature_f=32 + int(temperature_c / 0.5556),
            summary=summary,
        )
