"""Per-pass composition context: named resource handles and Pulumi exports."""

from dataclasses import dataclass, field
from typing import Any

import pulumi_aws

from pgstack.config import PostgresConfig


@dataclass
class CompositionContext:
    """Holds the handles built during one composition pass.

    A fresh context is created for every pass and thrown away afterwards; it
    never outlives the Pulumi program run.
    """

    config: PostgresConfig
    aws_provider: pulumi_aws.Provider
    _handles: dict[str, Any] = field(default_factory=dict)
    _exports: dict[str, Any] = field(default_factory=dict)

    def set(self, key: str, value: Any) -> None:
        if key in self._handles:
            raise RuntimeError(f"handle already set: {key!r}")
        self._handles[key] = value

    def require(self, key: str) -> Any:
        """Return a handle built earlier in the pass; raise RuntimeError listing known keys if absent."""
        if key not in self._handles:
            available = ", ".join(sorted(self._handles)) or "(none)"
            raise RuntimeError(f"missing required key: {key!r}. Available keys: {available}")
        return self._handles[key]

    def export(self, name: str, value: Any) -> None:
        """Register a stack export; export names are unique per pass."""
        if name in self._exports:
            raise RuntimeError(f"duplicate export name: {name!r}")
        self._exports[name] = value

    @property
    def exports(self) -> dict[str, Any]:
        return dict(self._exports)
