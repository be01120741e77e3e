import math
from typing import Annotated

from ..tool_registry import ToolError


def _as_number(value, field: str) -> float:
    # bool is an int subclass but never a valid operand
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ToolError(f"'{field}' must be a number, got {type(value).__name__}")
    return float(value)


class CalculatorPlugin:
    """Plugin providing floating-point arithmetic tools."""

    def add(
        self,
        a: Annotated[float, "first number"],
        b: Annotated[float, "second number"],
    ) -> dict:
        """add numbers together"""
        return {"result": _as_number(a, "a") + _as_number(b, "b")}

    def subtract(
        self,
        a: Annotated[float, "first number"],
        b: Annotated[float, "second number"],
    ) -> dict:
        """subtract numbers"""
        return {"result": _as_number(a, "a") - _as_number(b, "b")}

    def multiply(
        self,
        a: Annotated[float, "first number"],
        b: Annotated[float, "second number"],
    ) -> dict:
        """multiply numbers"""
        return {"result": _as_number(a, "a") * _as_number(b, "b")}

    def divide(
        self,
        a: Annotated[float, "numerator"],
        b: Annotated[float, "denominator (cannot be zero)"],
    ) -> dict:
        """divide first number by second"""
        numerator = _as_number(a, "a")
        denominator = _as_number(b, "b")
        if denominator == 0:
            raise ToolError("Cannot divide by zero")
        return {"result": numerator / denominator}

    def sqrt(self, number: Annotated[float, "number to take the square root of"]) -> dict:
        """take the square root of a number"""
        value = _as_number(number, "number")
        if value < 0:
            raise ToolError("Cannot take the square root of a negative number")
        return {"result": math.sqrt(value)}

    def power(
        self,
        base: Annotated[float, "base number"],
        exponent: Annotated[float, "exponent"],
    ) -> dict:
        """raise a number to a power"""
        try:
            result = math.pow(_as_number(base, "base"), _as_number(exponent, "exponent"))
        except (OverflowError, ValueError) as e:
            raise ToolError(f"Cannot raise {base} to the power {exponent}: {e}") from e
        return {"result": result}

    def hook_provide_tools(self):
        """Return tools this plugin provides for auto-registration."""
        return [self.add, self.subtract, self.multiply, self.divide, self.sqrt, self.power]
