# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsinit/bootstrap/orchestrator.py

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, List, NoReturn, Optional

from .cluster import AdminOutcome, ClusterBootstrapper
from .keyfile import ensure_secret
from .readiness import await_condition, is_live, is_primary, observe
from .supervisor import ProcessSupervisor, SupervisedProcess, secured_args
from ..admin.client import MongoAdminClient
from ..admin.interface import IAdmin
from ..config.models import BootstrapConfig
from ..errors import BootstrapError, LaunchError
from ..observers.dispatcher import EventBus
from ..observers.events import (
    new_ctx,
    utc_now,
    AdminOutcomeRecorded,
    PhaseFailed,
    PhaseStarted,
    PhaseSucceeded,
    PollAttempt,
    SecuredRestart,
    ServerLaunched,
    ServerStopped,
)

log = logging.getLogger("rsinit")


def _default_admin(cfg: BootstrapConfig) -> IAdmin:
    return MongoAdminClient(
        cfg.resolved_admin_uri,
        server_selection_timeout_ms=cfg.server_selection_timeout_ms,
        connect_timeout_ms=cfg.connect_timeout_ms,
    )


class BootstrapOrchestrator:
    """
    keyfile -> unsecured launch -> liveness -> replSetInitiate -> PRIMARY
    -> root user -> graceful stop -> exec secured server.

    Strictly sequential. Any BootstrapError aborts the run; the unsecured
    child, if still running, is terminated so that no unauthenticated
    server outlives the orchestrator.
    """

    def __init__(
        self,
        cfg: BootstrapConfig,
        *,
        admin: Optional[IAdmin] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        observers: Optional[List] = None,
        run_id: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cfg = cfg
        self.admin = admin if admin is not None else _default_admin(cfg)
        self.supervisor = supervisor or ProcessSupervisor(
            key_file_flags=cfg.key_file_flags,
            auth_flags=cfg.auth_flags,
        )
        self.cluster = ClusterBootstrapper(
            self.admin,
            replica_set_name=cfg.replica_set_name,
            root_role=cfg.root_role,
            root_role_db=cfg.root_role_db,
        )
        self.bus = EventBus(observers or [])
        self.run_ctx = new_ctx(
            instance=cfg.self_address,
            replica_set=cfg.replica_set_name,
            run_id=run_id,
        )
        self._sleep = sleep
        self._handle: Optional[SupervisedProcess] = None

    # ------------------------- internal helpers -------------------------

    def _ctx(self) -> dict:
        return dict(self.run_ctx, ts=utc_now())

    @contextmanager
    def _phase(self, name: str) -> Iterator[None]:
        self.bus.emit(PhaseStarted(phase=name, **self._ctx()))
        try:
            yield
        except BootstrapError as exc:
            if exc.phase is None:
                exc.phase = name
            self.bus.emit(PhaseFailed(phase=name, error=str(exc), **self._ctx()))
            raise
        except Exception as exc:
            self.bus.emit(PhaseFailed(phase=name, error=repr(exc), **self._ctx()))
            raise

    def _done(self, name: str, detail: str = "") -> None:
        log.info("[%s] %s", name, detail or "done")
        self.bus.emit(PhaseSucceeded(phase=name, detail=detail, **self._ctx()))

    def _record(self, phase: str, outcome: AdminOutcome) -> None:
        self.bus.emit(
            AdminOutcomeRecorded(
                phase=phase,
                outcome=outcome.kind.value,
                detail=outcome.detail,
                **self._ctx(),
            )
        )
        outcome.raise_for_failure(phase)
        self._done(phase, outcome.detail)

    def _poll(self, phase: str, check: Callable[[], bool], description: str) -> None:
        def _on_attempt(attempt: int, ready: bool, exc: Optional[Exception]) -> None:
            if attempt == 1 or ready or attempt % 10 == 0:
                log.debug(
                    "[%s] attempt=%s/%s ready=%s err=%s",
                    phase, attempt, self.cfg.max_attempts, ready, exc,
                )
            self.bus.emit(
                PollAttempt(
                    phase=phase,
                    attempt=attempt,
                    max_attempts=self.cfg.max_attempts,
                    ready=ready,
                    error=str(exc) if exc else None,
                    **self._ctx(),
                )
            )

        await_condition(
            check,
            max_attempts=self.cfg.max_attempts,
            interval=self.cfg.interval_seconds,
            on_attempt=_on_attempt,
            sleep=self._sleep,
            description=description,
            phase=phase,
        )

    def _child_alive(self) -> None:
        if self._handle is None or not self.supervisor.is_running(self._handle):
            raise LaunchError("server exited before becoming ready")

    # ------------------------- steps -------------------------

    def materialize_keyfile(self) -> None:
        with self._phase("keyfile"):
            secret = ensure_secret(
                self.cfg.effective_keyfile_path,
                owner=self.cfg.keyfile_owner,
                group=self.cfg.keyfile_group,
                num_bytes=self.cfg.keyfile_bytes,
            )
            self._done("keyfile", f"{'created' if secret.created else 'kept'} {secret.path}")

    def launch_unsecured(self) -> SupervisedProcess:
        with self._phase("launch"):
            self._handle = self.supervisor.launch(self.cfg.argv)
            self.bus.emit(ServerLaunched(pid=self._handle.pid, argv=self._handle.argv, **self._ctx()))
            self._done("launch", f"pid={self._handle.pid}")
        return self._handle

    def await_liveness(self) -> None:
        def _check() -> bool:
            self._child_alive()
            return is_live(self.admin)

        with self._phase("liveness"):
            log.info("Waiting for server to accept connections...")
            self._poll("liveness", _check, "server accepting connections")
            self._done("liveness", "server is up")

    def initiate_replica_set(self) -> AdminOutcome:
        with self._phase("initiate"):
            outcome = self.cluster.initiate_replica_set(self.cfg.self_address)
            self._record("initiate", outcome)
        return outcome

    def await_leadership(self) -> None:
        def _check() -> bool:
            self._child_alive()
            return is_primary(self.admin)

        with self._phase("leadership"):
            log.info("Waiting for PRIMARY state...")
            self._poll("leadership", _check, "member in PRIMARY state")
            self._done("leadership", str(observe(self.admin)))

    def create_root_user(self) -> AdminOutcome:
        with self._phase("root-user"):
            outcome = self.cluster.create_root_user(
                self.cfg.username, self.cfg.password.get_secret_value()
            )
            self._record("root-user", outcome)
        return outcome

    def stop_unsecured(self) -> None:
        with self._phase("shutdown"):
            if self._handle is None:
                raise LaunchError("no server to stop")
            pid = self._handle.pid
            rc = self.supervisor.stop_gracefully(self._handle, self.admin.shutdown)
            self.bus.emit(ServerStopped(pid=pid, returncode=rc, **self._ctx()))
            self._done("shutdown", f"pid={pid} rc={rc}")

    def restart_secured(self) -> NoReturn:
        with self._phase("secured-restart"):
            close = getattr(self.admin, "close", None)
            if callable(close):
                close()
            self.bus.emit(SecuredRestart(argv=secured_args(self.cfg.argv, self.cfg.auth_flag), **self._ctx()))
            self.supervisor.exec_replace(self.cfg.argv)

    # ------------------------- entry point -------------------------

    def run(self) -> NoReturn:
        try:
            self.materialize_keyfile()
            self.launch_unsecured()
            self.await_liveness()
            self.initiate_replica_set()
            self.await_leadership()
            self.create_root_user()
            self.stop_unsecured()
        except BaseException:
            self._abort()
            raise
        self.restart_secured()

    def _abort(self) -> None:
        handle = self._handle
        if handle is not None and not handle.released:
            try:
                self.supervisor.terminate(handle)
            except OSError as exc:
                log.error("could not terminate server pid=%s: %s", handle.pid, exc)
