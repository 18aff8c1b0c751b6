# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsinit/admin/client.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pymongo import MongoClient
from pymongo.errors import ConfigurationError, OperationFailure, PyMongoError

from .interface import IAdmin, ReplicaStatus, Role
from ..errors import AdminCommandError, ConfigError

log = logging.getLogger("rsinit")


class MongoAdminClient(IAdmin):
    """
    Thin wrapper around the `admin` database of a single mongod.
    - Always connects directly (no replica-set discovery): the member may be
      uninitiated, or about to shut down.
    - Every pymongo failure surfaces as AdminCommandError(code, code_name).
    - A malformed URI or client option is a ConfigError at construction.
    - Testable by passing a fake `client`.
    """

    def __init__(
        self,
        uri: str,
        *,
        server_selection_timeout_ms: int = 2000,
        connect_timeout_ms: int = 2000,
        client: Optional[Any] = None,
    ):
        self.uri = uri
        if client is not None:
            self._client = client
            return
        try:
            self._client = MongoClient(
                uri,
                directConnection=True,
                serverSelectionTimeoutMS=server_selection_timeout_ms,
                connectTimeoutMS=connect_timeout_ms,
                socketTimeoutMS=connect_timeout_ms * 5,
            )
        except ConfigurationError as exc:
            # InvalidURI is a ConfigurationError
            raise ConfigError(f"invalid admin connection string {uri!r}: {exc}", phase="config") from exc

    # ------------------------- internal helpers -------------------------

    def _command(self, command: str, value: Any = 1, **kwargs) -> Dict[str, Any]:
        try:
            return self._client.admin.command(command, value, **kwargs)
        except OperationFailure as exc:
            details = exc.details or {}
            raise AdminCommandError(
                str(details.get("errmsg") or exc),
                code=exc.code,
                code_name=details.get("codeName"),
            ) from exc
        except PyMongoError as exc:
            raise AdminCommandError(f"{command} failed: {exc}") from exc

    # ------------------------- protocol -------------------------

    def ping(self) -> bool:
        reply = self._command("ping")
        return float(reply.get("ok", 0)) == 1.0

    def status(self) -> ReplicaStatus:
        reply = self._command("replSetGetStatus")
        return ReplicaStatus(
            initiated=True,
            role=Role.from_state(reply.get("myState")),
            members=len(reply.get("members", [])),
        )

    def initiate(self, set_name: str, members: List[Dict[str, Any]]) -> None:
        self._command("replSetInitiate", {"_id": set_name, "members": members})

    def create_user(self, name: str, password: str, roles: List[Dict[str, str]]) -> None:
        self._command("createUser", name, pwd=password, roles=roles)

    def shutdown(self) -> None:
        log.debug("requesting shutdown via %s", self.uri)
        self._command("shutdown")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "MongoAdminClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
