from __future__ import annotations


class AccessApiError(RuntimeError):
    """The access controller answered with a non-SUCCESS envelope or garbage."""


class ConfigError(RuntimeError):
    """The orchestrator config file is missing or cannot be parsed."""
