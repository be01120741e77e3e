import zlib
from typing import Annotated

from ..tool_registry import ToolError

CONDITIONS = ["sunny", "cloudy", "rainy", "snowy"]


class WeatherPlugin:
    """Plugin serving canned weather data.

    Values are derived from a stable hash of the city name, so the same city
    always reports the same weather.
    """

    def get_weather(
        self,
        city: Annotated[str, "The city name"],
        units: Annotated[str, "Temperature units (celsius or fahrenheit)"] = "celsius",
    ) -> dict:
        """Get the current weather conditions for a city"""
        if not isinstance(city, str) or not city.strip():
            raise ToolError("'city' must be a non-empty string")
        if units not in ("celsius", "fahrenheit"):
            raise ToolError(f"Unsupported units: {units}")

        seed = zlib.crc32(city.strip().lower().encode("utf-8"))
        temp = float(15 + seed % 20)
        if units == "fahrenheit":
            temp = temp * 9 / 5 + 32

        return {
            "city": city,
            "temperature": round(temp),
            "units": "°F" if units == "fahrenheit" else "°C",
            "conditions": CONDITIONS[seed % len(CONDITIONS)],
            "humidity": 60 + seed % 30,
            "wind_speed": 5 + seed % 20,
        }

    def hook_provide_tools(self):
        """Return tools this plugin provides for auto-registration."""
        return [self.get_weather]
