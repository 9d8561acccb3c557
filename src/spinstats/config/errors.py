"""Errors raised while reading configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ConfigurationError(RuntimeError):
    """A configuration value is present but unusable."""


class MissingConfigurationError(ConfigurationError):
    """Required environment variables are unset or blank."""

    def __init__(self, names: Sequence[str]) -> None:
        super().__init__(f"Missing configuration for: {', '.join(names)}")
        self.names = tuple(names)
