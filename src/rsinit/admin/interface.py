# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsinit/admin/interface.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Protocol


class Role(str, Enum):
    PRIMARY = "PRIMARY"
    SECONDARY = "SECONDARY"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_state(cls, my_state: Any) -> "Role":
        # replSetGetStatus.myState: 1 = PRIMARY, 2 = SECONDARY
        if my_state == 1:
            return cls.PRIMARY
        if my_state == 2:
            return cls.SECONDARY
        return cls.UNKNOWN


@dataclass(frozen=True)
class ReplicaStatus:
    initiated: bool
    role: Role
    members: int = 0


class IAdmin(Protocol):
    """
    Administrative request/response protocol of the data store.
    Every method raises AdminCommandError on failure.
    """

    def ping(self) -> bool: ...

    def status(self) -> ReplicaStatus: ...

    def initiate(self, set_name: str, members: List[Dict[str, Any]]) -> None: ...

    def create_user(self, name: str, password: str, roles: List[Dict[str, str]]) -> None: ...

    def shutdown(self) -> None: ...
