from __future__ import annotations

import subprocess

from rsinit.admin.interface import ReplicaStatus, Role
from rsinit.errors import AdminCommandError


# ----------------- Fake mongod admin interface -----------------

class FakeAdmin:
    """
    In-memory stand-in for a single mongod:
      - unreachable for the first `down_pings` pings
      - replSetGetStatus fails with NotYetInitialized until initiated
      - SECONDARY for `secondary_polls` status calls after initiation, then PRIMARY
      - createUser fails with 51003 "already exists" on replay
    """

    def __init__(self, down_pings=0, secondary_polls=0, initiated=False, users=None):
        self.down_pings = down_pings
        self.secondary_polls = secondary_polls
        self.initiated = initiated
        self.set_name = None
        self.members = []
        self.users = dict(users or {})
        self.calls = []
        self.create_user_error = None
        self.initiate_error = None
        self.shutdown_requested = False

    def ping(self):
        self.calls.append(("ping",))
        if self.down_pings > 0:
            self.down_pings -= 1
            raise AdminCommandError("connection refused")
        return True

    def status(self):
        self.calls.append(("status",))
        if not self.initiated:
            raise AdminCommandError(
                "no replset config has been received",
                code=94,
                code_name="NotYetInitialized",
            )
        if self.secondary_polls > 0:
            self.secondary_polls -= 1
            return ReplicaStatus(initiated=True, role=Role.SECONDARY, members=len(self.members))
        return ReplicaStatus(initiated=True, role=Role.PRIMARY, members=len(self.members))

    def initiate(self, set_name, members):
        self.calls.append(("initiate", set_name, members))
        if self.initiate_error:
            raise self.initiate_error
        if self.initiated:
            raise AdminCommandError("already initialized", code=23, code_name="AlreadyInitialized")
        self.initiated = True
        self.set_name = set_name
        self.members = list(members)

    def create_user(self, name, password, roles):
        self.calls.append(("createUser", name, roles))
        if self.create_user_error:
            raise self.create_user_error
        if name in self.users:
            raise AdminCommandError(
                f'User "{name}@admin" already exists',
                code=51003,
                code_name="Location51003",
            )
        self.users[name] = {"pwd": password, "roles": roles}

    def shutdown(self):
        self.calls.append(("shutdown",))
        self.shutdown_requested = True
        raise AdminCommandError("connection closed")


# ----------------- Fake child process -----------------

class FakeProc:
    _next_pid = 4242

    def __init__(self, argv, rc=0, exited=False, ignore_term=False):
        self.argv = list(argv)
        self.pid = FakeProc._next_pid
        FakeProc._next_pid += 1
        self.rc = rc
        self.exited = exited
        self.ignore_term = ignore_term
        self.log = []

    def poll(self):
        return self.rc if self.exited else None

    def wait(self, timeout=None):
        self.log.append(("wait", timeout))
        if self.ignore_term and timeout is not None and not self.exited:
            raise subprocess.TimeoutExpired(self.argv, timeout)
        self.exited = True
        return self.rc

    def terminate(self):
        self.log.append(("terminate",))
        if not self.ignore_term:
            self.exited = True

    def kill(self):
        self.log.append(("kill",))
        self.ignore_term = False
        self.exited = True
        self.rc = -9


class SpyPopen:
    def __init__(self, **proc_kwargs):
        self.calls = []
        self.procs = []
        self.proc_kwargs = proc_kwargs

    def __call__(self, argv, *a, **kw):
        self.calls.append(list(argv))
        proc = FakeProc(argv, **self.proc_kwargs)
        self.procs.append(proc)
        return proc


class ExecCalled(Exception):
    """Raised by the fake execvp so tests can observe the final exec."""

    def __init__(self, file, argv):
        super().__init__(file)
        self.file = file
        self.argv = list(argv)


def fake_execvp(file, argv):
    raise ExecCalled(file, argv)


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


