from .calculator_plugin import CalculatorPlugin
from .search_plugin import SearchPlugin
from .weather_plugin import WeatherPlugin


def default_plugins() -> list:
    """Plugins whose tools are advertised to the model by default."""
    return [CalculatorPlugin(), WeatherPlugin(), SearchPlugin()]


__all__ = ["CalculatorPlugin", "SearchPlugin", "WeatherPlugin", "default_plugins"]
