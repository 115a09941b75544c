from __future__ import annotations

from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Optional

from .errors import UnknownPluginError


@dataclass(frozen=True)
class PluginParameter:
    name: str
    type: str                 # "number" | "string" | "boolean"
    description: str
    default: Any = None
    required: bool = False


class Registry:
    """
    Name -> plugin class table, built once at startup and read-only after.

    `resolve()` instantiates on every call, so concurrent runs never share
    a plugin instance (stateful strategies keep their windows per run).
    """

    def __init__(self, kind: str, plugins: Iterable[Callable[[], Any]]):
        self.kind = kind
        entries: Dict[str, Callable[[], Any]] = {}
        for plugin in plugins:
            name = plugin.name
            if name in entries:
                raise ValueError(f"duplicate {kind} name: {name!r}")
            entries[name] = plugin
        self._entries = MappingProxyType(entries)

    def resolve(self, name: str, params: Optional[Dict[str, Any]] = None):
        factory = self._entries.get(name)
        if factory is None:
            raise UnknownPluginError(self.kind, name)
        return factory(params) if params is not None else factory()

    def list_names(self) -> List[str]:
        return list(self._entries)

    def describe(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": name,
                "description": plugin.description,
                "parameters": [asdict(p) for p in plugin.parameters],
            }
            for name, plugin in self._entries.items()
        ]
