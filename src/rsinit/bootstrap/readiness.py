# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsinit/bootstrap/readiness.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..admin.interface import IAdmin, Role
from ..errors import AdminCommandError
from ..utils.retry import await_condition

__all__ = [
    "ClusterState",
    "Connectivity",
    "Membership",
    "await_condition",
    "is_live",
    "is_primary",
    "observe",
]

log = logging.getLogger("rsinit")

# replSetGetStatus on a member that never ran replSetInitiate
NOT_YET_INITIALIZED = 94


class Connectivity(str, Enum):
    REACHABLE = "REACHABLE"
    UNREACHABLE = "UNREACHABLE"


class Membership(str, Enum):
    INITIATED = "INITIATED"
    UNINITIATED = "UNINITIATED"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ClusterState:
    """Externally observed state of the member. Never cached."""
    connectivity: Connectivity
    membership: Membership
    role: Role

    @property
    def is_primary(self) -> bool:
        return self.role is Role.PRIMARY

    def __str__(self) -> str:
        return f"{self.connectivity.value}/{self.membership.value}/{self.role.value}"


def observe(admin: IAdmin) -> ClusterState:
    """Query ping + replica status and fold the answers into a ClusterState."""
    try:
        reachable = admin.ping()
    except AdminCommandError as exc:
        log.debug("ping failed: %s", exc)
        reachable = False

    if not reachable:
        return ClusterState(Connectivity.UNREACHABLE, Membership.UNKNOWN, Role.UNKNOWN)

    try:
        status = admin.status()
    except AdminCommandError as exc:
        membership = (
            Membership.UNINITIATED
            if exc.code == NOT_YET_INITIALIZED or exc.code_name == "NotYetInitialized"
            else Membership.UNKNOWN
        )
        return ClusterState(Connectivity.REACHABLE, membership, Role.UNKNOWN)

    membership = Membership.INITIATED if status.initiated else Membership.UNINITIATED
    return ClusterState(Connectivity.REACHABLE, membership, status.role)


def is_live(admin: IAdmin) -> bool:
    """Liveness: ping answers ok."""
    return admin.ping()


def is_primary(admin: IAdmin) -> bool:
    """Leadership: the local member reports PRIMARY."""
    return admin.status().role is Role.PRIMARY
