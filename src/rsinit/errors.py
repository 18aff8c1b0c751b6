# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsinit/errors.py
from __future__ import annotations

from typing import Optional


class BootstrapError(RuntimeError):
    """Base class for fatal bootstrap failures."""

    def __init__(self, message: str, *, phase: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.phase = phase

    def __str__(self) -> str:
        if self.phase:
            return f"[{self.phase}] {self.message}"
        return self.message


class ConfigError(BootstrapError):
    """Missing or invalid configuration (pre-flight)."""


class StorageError(BootstrapError):
    """Key file cannot be written, chmod-ed or chown-ed."""


class LaunchError(BootstrapError):
    """Server process could not be started or exec-replaced."""


class ReadinessTimeout(BootstrapError, TimeoutError):
    """Polling budget exhausted."""


class AdminError(BootstrapError):
    """Administrative command failed in an unrecognized way."""


class AdminCommandError(RuntimeError):
    """
    A single administrative request failed.

    Carries the server's error code / codeName when the server answered,
    both None when it could not be reached at all.
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[int] = None,
        code_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.code_name = code_name
