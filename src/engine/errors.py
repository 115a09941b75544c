from typing import Any, Dict, Optional


class BacktestError(Exception):
    """
    Base class for every failure a run can report back to the caller.

    Subclasses add the context (field, plugin name, candle index) needed
    to act on the error; `to_dict()` is what the HTTP layer returns.
    """

    kind = "backtest_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def context(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        out = {"error": self.kind, "message": self.message}
        out.update({k: v for k, v in self.context().items() if v is not None})
        return out


class ConfigurationError(BacktestError):
    kind = "configuration_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def context(self) -> Dict[str, Any]:
        return {"field": self.field}


class UnknownPluginError(BacktestError):
    kind = "unknown_plugin"

    def __init__(self, plugin_kind: str, name: Any):
        super().__init__(f"unknown {plugin_kind}: {name!r}")
        self.plugin_kind = plugin_kind
        self.name = name

    def context(self) -> Dict[str, Any]:
        return {"plugin_kind": self.plugin_kind, "plugin": self.name}


class RiskComputationError(BacktestError):
    kind = "risk_computation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def context(self) -> Dict[str, Any]:
        return {"field": self.field}


class InvalidRiskParameters(RiskComputationError):
    kind = "invalid_risk_parameters"


class PluginExecutionError(BacktestError):
    kind = "plugin_execution_error"

    def __init__(self, plugin: str, message: str, index: Optional[int] = None):
        super().__init__(f"{plugin} failed: {message}")
        self.plugin = plugin
        self.index = index

    def context(self) -> Dict[str, Any]:
        return {"plugin": self.plugin, "index": self.index}
