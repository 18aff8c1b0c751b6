# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsinit/bootstrap/cluster.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..admin.interface import IAdmin
from ..errors import AdminCommandError, AdminError

log = logging.getLogger("rsinit")

DUPLICATE_KEY_CODE = 11000
DUPLICATE_KEY_NAME = "DuplicateKey"
ALREADY_EXISTS = "already exists"


class OutcomeKind(str, Enum):
    APPLIED = "APPLIED"
    ALREADY_SATISFIED = "ALREADY_SATISFIED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class AdminOutcome:
    kind: OutcomeKind
    detail: str = ""
    cause: Optional[AdminCommandError] = None

    @classmethod
    def applied(cls, detail: str = "") -> "AdminOutcome":
        return cls(OutcomeKind.APPLIED, detail)

    @classmethod
    def already_satisfied(cls, detail: str = "") -> "AdminOutcome":
        return cls(OutcomeKind.ALREADY_SATISFIED, detail)

    @classmethod
    def failed(cls, cause: AdminCommandError) -> "AdminOutcome":
        return cls(OutcomeKind.FAILED, str(cause), cause)

    @property
    def ok(self) -> bool:
        return self.kind is not OutcomeKind.FAILED

    def raise_for_failure(self, phase: str) -> "AdminOutcome":
        if self.kind is OutcomeKind.FAILED:
            raise AdminError(self.detail, phase=phase) from self.cause
        return self


def is_duplicate_user_error(err: AdminCommandError) -> bool:
    """
    "Already exists" policy for createUser. Closed set of shapes:
      - code 11000
      - codeName DuplicateKey
      - message containing "already exists" (any case)
    """
    if err.code == DUPLICATE_KEY_CODE:
        return True
    if err.code_name == DUPLICATE_KEY_NAME:
        return True
    return ALREADY_EXISTS in (err.message or "").lower()


class ClusterBootstrapper:
    """
    One-time administrative commands, safe to replay against a partially
    bootstrapped member. State is probed on the server, never checkpointed.
    """

    def __init__(
        self,
        admin: IAdmin,
        *,
        replica_set_name: str = "rs0",
        root_role: str = "root",
        root_role_db: str = "admin",
    ):
        self.admin = admin
        self.replica_set_name = replica_set_name
        self.root_role = root_role
        self.root_role_db = root_role_db

    def initiate_replica_set(self, self_address: str) -> AdminOutcome:
        try:
            status = self.admin.status()
        except AdminCommandError as probe_err:
            log.debug("replica status unavailable (%s); initiating", probe_err)
        else:
            return AdminOutcome.already_satisfied(
                f"replica set already initiated (role={status.role.value})"
            )

        members = [{"_id": 0, "host": self_address}]
        log.info("Initiating replica set %s with %s", self.replica_set_name, self_address)
        try:
            self.admin.initiate(self.replica_set_name, members)
        except AdminCommandError as exc:
            log.error("replSetInitiate failed: %s", exc)
            return AdminOutcome.failed(exc)

        return AdminOutcome.applied(f"initiated {self.replica_set_name} with {self_address}")

    def create_root_user(self, username: str, password: str) -> AdminOutcome:
        roles = [{"role": self.root_role, "db": self.root_role_db}]
        log.info("Ensuring root user %s exists", username)
        try:
            self.admin.create_user(username, password, roles)
        except AdminCommandError as exc:
            if is_duplicate_user_error(exc):
                log.info("Root user %s already exists", username)
                return AdminOutcome.already_satisfied(f"user {username} already exists")
            log.error("createUser %s failed: %s", username, exc)
            return AdminOutcome.failed(exc)

        return AdminOutcome.applied(f"created user {username} ({self.root_role}@{self.root_role_db})")
