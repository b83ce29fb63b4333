# The module is to define the get_weather_data tool backed by the OpenWeather 5 day / 3 hour forecast.
# Date: 2025-06-14
# Version: 0.1.0

from typing import Any, Dict, Optional, Type

import httpx
from pydantic import BaseModel, Field

from toolstream.core.config import ProviderCredentials
from toolstream.core.errors import ToolError
from toolstream.utils.logger import console

from .base_tool import BaseTool

FORECAST_URL = "https://api.openweathermap.org/data/2.5/forecast"


class WeatherInput(BaseModel):
    """Input model for the get_weather_data tool."""
    lat: float = Field(..., ge=-90, le=90, description="The latitude of the location.")
    lon: float = Field(..., ge=-180, le=180, description="The longitude of the location.")


class WeatherTool(BaseTool):
    """
    Fetches the multi-day forecast for a coordinate. Entries come at a fixed
    3-hour cadence; the provider payload is passed through, only sorted.
    """
    name: str = "get_weather_data"
    description: str = "Gets the weather forecast (3-hour steps over the next days) for the given coordinates."
    args_schema: Type[BaseModel] = WeatherInput

    def __init__(self, credentials: ProviderCredentials, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(credentials, transport)
        if not credentials.openweather_api_key:
            raise ValueError("OPENWEATHER_API_KEY is not set in the .env file.")

    async def execute(self, lat: float, lon: float) -> Dict[str, Any]:
        console.info(f"Executing tool '{self.name}' for ({lat}, {lon})")
        params = {"lat": lat, "lon": lon, "appid": self._credentials.openweather_api_key}
        try:
            async with self._http_client() as client:
                response = await client.get(FORECAST_URL, params=params)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ToolError(f"Weather lookup failed for ({lat}, {lon}): {e}") from e

        forecast = sorted(data.get("list", []), key=lambda entry: entry.get("dt", 0))
        return {**data, "list": forecast}
