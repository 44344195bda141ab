"""Interactive integer calculator with variables."""

from smartcalc.main import Calculator, ErrorKind, Result, VariableEnvironment

__all__ = ["Calculator", "ErrorKind", "Result", "VariableEnvironment"]
