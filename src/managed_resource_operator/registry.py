"""Registry of resource kinds driven by the operator.

The registry is built once at start-up and handed to the engine and to the
host wiring; nothing registers itself at import time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Callable, Iterator

from .constants import DEFAULT_ENTRY_POINT_GROUP
from .exceptions import UnknownKindError
from .services.backend.base import BackendAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceKind:
    """One custom resource kind and the adapter that backs it."""

    kind: str
    group: str
    version: str
    plural: str
    adapter_factory: Callable[[], BackendAdapter]
    secret_prefix: str = ""

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"

    def new_adapter(self) -> BackendAdapter:
        return self.adapter_factory()


class KindRegistry:
    """Explicit mapping from kind name to its registration."""

    def __init__(self, kinds: list[ResourceKind] | None = None):
        self._kinds: dict[str, ResourceKind] = {}
        for kind in kinds or []:
            self.register(kind)

    def register(self, kind: ResourceKind) -> None:
        """Register a resource kind.

        Raises:
            ValueError: If the kind name is already registered
        """
        if kind.kind in self._kinds:
            raise ValueError(f"Resource kind '{kind.kind}' is already registered")
        self._kinds[kind.kind] = kind
        logger.info(f"Registered resource kind: {kind.kind} ({kind.plural}.{kind.api_version})")

    def get(self, name: str) -> ResourceKind:
        """Return the registration for a kind.

        Raises:
            UnknownKindError: If the kind is not registered
        """
        try:
            return self._kinds[name]
        except KeyError:
            available = ", ".join(sorted(self._kinds)) or "none"
            raise UnknownKindError(f"Unknown resource kind: {name}. Registered kinds: {available}") from None

    def __contains__(self, name: object) -> bool:
        return name in self._kinds

    def __iter__(self) -> Iterator[ResourceKind]:
        return iter(list(self._kinds.values()))

    def __len__(self) -> int:
        return len(self._kinds)

    @classmethod
    def from_entry_points(cls, group: str = DEFAULT_ENTRY_POINT_GROUP) -> "KindRegistry":
        """Discover kinds published by installed adapter packages.

        Each entry point must resolve to a ``ResourceKind``, or to a callable
        returning one or a list of them.

        Args:
            group: Entry point group to scan

        Returns:
            Registry holding every discovered kind
        """
        registry = cls()
        for ep in entry_points(group=group):
            loaded = ep.load()
            if not isinstance(loaded, ResourceKind) and callable(loaded):
                loaded = loaded()
            kinds = loaded if isinstance(loaded, (list, tuple)) else [loaded]
            for kind in kinds:
                if not isinstance(kind, ResourceKind):
                    raise TypeError(
                        f"Entry point '{ep.name}' in group '{group}' did not provide a ResourceKind"
                    )
                registry.register(kind)
        if not registry:
            logger.warning(f"No resource kinds found in entry point group '{group}'")
        return registry
