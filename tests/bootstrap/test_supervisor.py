import pytest

from rsinit.bootstrap.supervisor import (
    ProcessSupervisor,
    filter_auth_args,
    key_file_arg,
    secured_args,
)
from rsinit.errors import LaunchError

from fakes import ExecCalled, SpyPopen, fake_execvp


def test_filter_drops_both_keyfile_forms_and_auth():
    argv = [
        "mongod",
        "--replSet", "rs0",
        "--keyFile", "/data/mongo-keyfile",
        "--bind_ip_all",
        "--auth",
        "--keyFile=/other/key",
        "--port", "27017",
    ]

    assert filter_auth_args(argv) == [
        "mongod",
        "--replSet", "rs0",
        "--bind_ip_all",
        "--port", "27017",
    ]


def test_filter_trailing_keyfile_flag_without_value():
    assert filter_auth_args(["mongod", "--bind_ip_all", "--keyFile"]) == ["mongod", "--bind_ip_all"]


def test_filter_keeps_lookalike_flags():
    argv = ["mongod", "--authenticationMechanisms=SCRAM-SHA-256", "--keyFileX", "v"]
    assert filter_auth_args(argv) == argv


def test_secured_args_appends_auth_once():
    assert secured_args(["mongod", "--replSet", "rs0"]) == ["mongod", "--replSet", "rs0", "--auth"]
    assert secured_args(["mongod", "--auth"]) == ["mongod", "--auth"]


def test_launch_starts_filtered_command(spy_popen):
    sup = ProcessSupervisor(popen=spy_popen)

    handle = sup.launch(["mongod", "--auth", "--keyFile", "/k", "--replSet", "rs0"])

    assert spy_popen.calls == [["mongod", "--replSet", "rs0"]]
    assert handle.argv == ["mongod", "--replSet", "rs0"]
    assert handle.pid == spy_popen.procs[0].pid
    assert sup.current is handle


def test_launch_missing_executable_raises_launch_error():
    def popen(argv, *a, **kw):
        raise FileNotFoundError(2, "No such file or directory", argv[0])

    sup = ProcessSupervisor(popen=popen)
    with pytest.raises(LaunchError) as ei:
        sup.launch(["mongod-missing"])
    assert ei.value.phase == "launch"


def test_launch_empty_command_line():
    sup = ProcessSupervisor(popen=SpyPopen())
    with pytest.raises(LaunchError):
        sup.launch(["--auth"])


def test_launch_refuses_second_child(spy_popen):
    sup = ProcessSupervisor(popen=spy_popen)
    sup.launch(["mongod"])
    with pytest.raises(LaunchError):
        sup.launch(["mongod"])


def test_stop_gracefully_swallows_shutdown_error_and_waits(spy_popen):
    sup = ProcessSupervisor(popen=spy_popen)
    handle = sup.launch(["mongod"])
    proc = spy_popen.procs[0]

    def admin_stop():
        raise ConnectionResetError("server went away")

    rc = sup.stop_gracefully(handle, admin_stop)

    assert rc == 0
    assert ("wait", None) in proc.log
    assert handle.released
    assert sup.current is None


def test_stop_gracefully_nonzero_exit_is_not_fatal():
    sup = ProcessSupervisor(popen=SpyPopen(rc=12))
    handle = sup.launch(["mongod"])

    assert sup.stop_gracefully(handle, lambda: None) == 12
    assert handle.returncode == 12


def test_is_running_releases_exited_child(spy_popen):
    sup = ProcessSupervisor(popen=spy_popen)
    handle = sup.launch(["mongod"])
    assert sup.is_running(handle)

    spy_popen.procs[0].exited = True
    spy_popen.procs[0].rc = 48

    assert not sup.is_running(handle)
    assert handle.released
    assert handle.returncode == 48


def test_terminate_escalates_to_kill():
    popen = SpyPopen(ignore_term=True)
    sup = ProcessSupervisor(popen=popen)
    handle = sup.launch(["mongod"])

    rc = sup.terminate(handle, timeout=0.1)

    kinds = [e[0] for e in popen.procs[0].log]
    assert kinds[:2] == ["terminate", "wait"]
    assert "kill" in kinds
    assert rc == -9
    assert handle.released


def test_exec_replace_uses_full_argv_plus_auth():
    sup = ProcessSupervisor(execvp=fake_execvp)
    argv = ["mongod", "--replSet", "rs0", "--keyFile", "/data/mongo-keyfile"]

    with pytest.raises(ExecCalled) as ei:
        sup.exec_replace(argv)

    assert ei.value.file == "mongod"
    assert ei.value.argv == argv + ["--auth"]


def test_exec_replace_failure_raises_launch_error():
    def execvp(file, argv):
        raise FileNotFoundError(2, "No such file or directory", file)

    sup = ProcessSupervisor(execvp=execvp)
    with pytest.raises(LaunchError) as ei:
        sup.exec_replace(["mongod"])
    assert ei.value.phase == "secured-restart"


def test_exec_replace_refuses_while_unsecured_child_runs(spy_popen):
    sup = ProcessSupervisor(popen=spy_popen, execvp=fake_execvp)
    sup.launch(["mongod"])

    with pytest.raises(LaunchError):
        sup.exec_replace(["mongod"])


def test_key_file_arg_reads_both_forms():
    assert key_file_arg(["mongod", "--keyFile", "/a"]) == "/a"
    assert key_file_arg(["mongod", "--keyFile=/b"]) == "/b"
    assert key_file_arg(["mongod", "--keyFile", "/a", "--keyFile=/b"]) == "/b"
    assert key_file_arg(["mongod", "--keyFile"]) is None
    assert key_file_arg(["mongod", "--keyFileX", "/c"]) is None
