# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/rsinit/bootstrap/supervisor.py

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Callable, List, NoReturn, Optional, Sequence

from ..errors import LaunchError
from ..logging.log import flush_logging

log = logging.getLogger("rsinit")

DEFAULT_KEY_FILE_FLAGS = ("--keyFile",)
DEFAULT_AUTH_FLAGS = ("--auth",)


def filter_auth_args(
    argv: Sequence[str],
    value_flags: Sequence[str] = DEFAULT_KEY_FILE_FLAGS,
    bare_flags: Sequence[str] = DEFAULT_AUTH_FLAGS,
) -> List[str]:
    """
    Strip authentication flags from a server command line.

    - ``--keyFile <path>``: both tokens dropped
    - ``--keyFile=<path>``: dropped
    - ``--auth``: dropped
    Everything else is kept, in order.
    """
    filtered: List[str] = []
    skip_next = False
    for arg in argv:
        if skip_next:
            skip_next = False
            continue
        if arg in value_flags:
            skip_next = True
            continue
        if any(arg.startswith(f"{flag}=") for flag in value_flags):
            continue
        if arg in bare_flags:
            continue
        filtered.append(arg)
    return filtered


def key_file_arg(
    argv: Sequence[str],
    value_flags: Sequence[str] = DEFAULT_KEY_FILE_FLAGS,
) -> Optional[str]:
    """Key-file path named on a server command line (last occurrence wins)."""
    found: Optional[str] = None
    args = list(argv)
    for i, arg in enumerate(args):
        if arg in value_flags:
            if i + 1 < len(args):
                found = args[i + 1]
            continue
        for flag in value_flags:
            if arg.startswith(f"{flag}="):
                found = arg[len(flag) + 1:]
    return found or None


def secured_args(argv: Sequence[str], auth_flag: str = "--auth") -> List[str]:
    """Original command line plus the auth flag (not duplicated)."""
    args = list(argv)
    if auth_flag not in args:
        args.append(auth_flag)
    return args


@dataclass
class SupervisedProcess:
    """A running server child. Owned by ProcessSupervisor only."""
    proc: Optional[subprocess.Popen]
    argv: List[str]
    pid: int
    returncode: Optional[int] = None

    @property
    def released(self) -> bool:
        return self.proc is None


class ProcessSupervisor:
    """
    Owns the server child process for its whole lifetime:
      - launch (unsecured, auth flags stripped)
      - liveness observation
      - graceful stop: admin shutdown request, then unbounded wait
      - exec-replace into the secured server
    `popen` and `execvp` are injectable for tests.
    """

    def __init__(
        self,
        *,
        key_file_flags: Sequence[str] = DEFAULT_KEY_FILE_FLAGS,
        auth_flags: Sequence[str] = DEFAULT_AUTH_FLAGS,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        execvp: Callable[[str, List[str]], None] = os.execvp,
    ):
        self.key_file_flags = tuple(key_file_flags)
        self.auth_flags = tuple(auth_flags)
        self._popen = popen
        self._execvp = execvp
        self._current: Optional[SupervisedProcess] = None

    @property
    def current(self) -> Optional[SupervisedProcess]:
        return self._current

    # ------------------------- launch -------------------------

    def launch(self, argv: Sequence[str]) -> SupervisedProcess:
        if self._current is not None and not self._current.released:
            raise LaunchError(
                f"server already running (pid={self._current.pid})", phase="launch"
            )

        args = filter_auth_args(argv, self.key_file_flags, self.auth_flags)
        if not args:
            raise LaunchError("empty server command line", phase="launch")

        log.info("Starting unsecured server: %s", " ".join(args))
        try:
            proc = self._popen(args)
        except OSError as exc:
            raise LaunchError(f"cannot start {args[0]}: {exc}", phase="launch") from exc

        handle = SupervisedProcess(proc=proc, argv=args, pid=proc.pid)
        self._current = handle
        log.debug("server started pid=%s", handle.pid)
        return handle

    # ------------------------- observation -------------------------

    def _release(self, handle: SupervisedProcess, returncode: Optional[int]) -> None:
        handle.returncode = returncode
        handle.proc = None
        if self._current is handle:
            self._current = None

    def is_running(self, handle: SupervisedProcess) -> bool:
        if handle.proc is None:
            return False
        rc = handle.proc.poll()
        if rc is None:
            return True
        log.warning("server pid=%s exited on its own (rc=%s)", handle.pid, rc)
        self._release(handle, rc)
        return False

    # ------------------------- shutdown -------------------------

    def stop_gracefully(
        self,
        handle: SupervisedProcess,
        admin_stop: Callable[[], None],
    ) -> Optional[int]:
        """
        Ask the server to shut down, then block until it has exited.

        The request is best-effort: the connection usually drops while the
        server goes away. The wait has no timeout.
        """
        if handle.proc is None:
            log.debug("server pid=%s already released", handle.pid)
            return handle.returncode

        try:
            admin_stop()
        except Exception as exc:
            log.debug("shutdown request for pid=%s ended with: %s", handle.pid, exc)

        log.info("Waiting for server pid=%s to exit...", handle.pid)
        rc = handle.proc.wait()
        if rc != 0:
            log.warning("server pid=%s exited with rc=%s", handle.pid, rc)
        else:
            log.info("server pid=%s exited cleanly", handle.pid)
        self._release(handle, rc)
        return rc

    def terminate(self, handle: SupervisedProcess, timeout: float = 30.0) -> Optional[int]:
        """Failure path only: SIGTERM, bounded wait, then SIGKILL."""
        if handle.proc is None:
            return handle.returncode

        proc = handle.proc
        log.warning("Terminating server pid=%s", handle.pid)
        proc.terminate()
        try:
            rc = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            log.warning("server pid=%s ignored SIGTERM for %ss, killing", handle.pid, timeout)
            proc.kill()
            rc = proc.wait()
        self._release(handle, rc)
        return rc

    # ------------------------- secured restart -------------------------

    def exec_replace(self, argv: Sequence[str]) -> NoReturn:
        """
        Replace this process image with the secured server.
        Only returns by raising LaunchError.
        """
        if self._current is not None and not self._current.released:
            raise LaunchError(
                f"unsecured server pid={self._current.pid} still running", phase="secured-restart"
            )

        args = secured_args(argv, self.auth_flags[0] if self.auth_flags else "--auth")
        if not args:
            raise LaunchError("empty server command line", phase="secured-restart")

        log.info("Restarting server with authentication: %s", " ".join(args))
        flush_logging()
        try:
            self._execvp(args[0], args)
        except OSError as exc:
            raise LaunchError(f"exec of {args[0]} failed: {exc}", phase="secured-restart") from exc
        raise LaunchError(f"exec of {args[0]} returned", phase="secured-restart")
