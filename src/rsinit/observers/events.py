# src/rsinit/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str                   # ISO timestamp
    run_id: str               # correlates all events of one bootstrap run
    instance: str             # self address of the bootstrapped member
    replica_set: Optional[str]

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def utc_now() -> str:
    return datetime.utcnow().isoformat(timespec="milliseconds") + "Z"


def new_ctx(
    instance: str,
    replica_set: Optional[str],
    run_id: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "ts": utc_now(),
        "run_id": run_id or str(uuid.uuid4()),
        "instance": instance,
        "replica_set": replica_set,
    }


# ---------------------------------------------------------------------
# Phase lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PhaseStarted(BaseEvent):
    phase: str

@dataclass(frozen=True)
class PhaseSucceeded(BaseEvent):
    phase: str
    detail: str = ""

@dataclass(frozen=True)
class PhaseFailed(BaseEvent):
    phase: str
    error: str


# ---------------------------------------------------------------------
# Readiness polling
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PollAttempt(BaseEvent):
    phase: str
    attempt: int
    max_attempts: int
    ready: bool
    error: Optional[str] = None


# ---------------------------------------------------------------------
# Administrative commands
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class AdminOutcomeRecorded(BaseEvent):
    phase: str
    outcome: str      # "APPLIED" | "ALREADY_SATISFIED" | "FAILED"
    detail: str


# ---------------------------------------------------------------------
# Process lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ServerLaunched(BaseEvent):
    pid: int
    argv: List[str]

@dataclass(frozen=True)
class ServerStopped(BaseEvent):
    pid: int
    returncode: Optional[int]

@dataclass(frozen=True)
class SecuredRestart(BaseEvent):
    argv: List[str]
