from unittest.mock import MagicMock, patch

import psutil
import pytest

from agent_deploy import system
from agent_deploy.system import (
    ConfigStore,
    ServiceController,
    WindowsRegistryStore,
    WindowsServiceController,
    is_64bit_os,
    program_files_dir,
)

from conftest import PROGRAM_FILES, PROGRAM_FILES_X86, FakeConfigStore, FakeServiceController


def test_fakes_satisfy_capability_interfaces():
    assert isinstance(FakeConfigStore(), ConfigStore)
    assert isinstance(FakeServiceController(), ServiceController)
    assert isinstance(WindowsServiceController(), ServiceController)
    assert isinstance(WindowsRegistryStore(), ConfigStore)


@pytest.mark.parametrize("environ,expected", [
    ({"PROCESSOR_ARCHITECTURE": "AMD64"}, True),
    ({"PROCESSOR_ARCHITECTURE": "ARM64"}, True),
    ({"PROCESSOR_ARCHITECTURE": "x86"}, False),
    ({"PROCESSOR_ARCHITECTURE": "x86", "PROCESSOR_ARCHITEW6432": "AMD64"}, True),
])
def test_is_64bit_os(environ, expected):
    assert is_64bit_os(environ) is expected


def test_program_files_on_64bit_os_from_32bit_process():
    environ = {
        "PROCESSOR_ARCHITECTURE": "x86",
        "PROCESSOR_ARCHITEW6432": "AMD64",
        "ProgramFiles": PROGRAM_FILES_X86,
        "ProgramW6432": PROGRAM_FILES,
    }
    assert program_files_dir(environ) == PROGRAM_FILES


def test_program_files_on_32bit_os():
    environ = {"PROCESSOR_ARCHITECTURE": "x86", "ProgramFiles": PROGRAM_FILES}
    assert program_files_dir(environ) == PROGRAM_FILES


def test_host_info_reports_architecture(environ_64):
    info = system.host_info(environ_64)
    assert info["architecture"].startswith("64-bit OS")
    assert info["hostname"]


def fake_service(status):
    service = MagicMock()
    service.status.return_value = status
    return service


def test_service_status_and_missing_service():
    def win_service_get(name):
        if name == "SecurityAgent":
            return fake_service("running")
        raise psutil.NoSuchProcess(pid=None, name=name)

    with patch.object(system.psutil, "win_service_get", side_effect=win_service_get, create=True):
        controller = WindowsServiceController()
        assert controller.status("SecurityAgent") == "running"
        assert controller.exists("SecurityAgent")
        assert controller.status("Missing") is None
        assert not controller.exists("Missing")


def test_stop_missing_service_is_noop():
    with patch.object(system.psutil, "win_service_get", side_effect=psutil.NoSuchProcess(pid=None),
                      create=True), patch.object(system.subprocess, "run") as run:
        WindowsServiceController().stop("SecurityAgent")
    run.assert_not_called()


def test_stop_running_service_waits_until_stopped():
    services = [fake_service("running"), fake_service("stop_pending"), fake_service("stopped")]
    with patch.object(system.psutil, "win_service_get", side_effect=services, create=True), \
            patch.object(system.subprocess, "run") as run, patch.object(system.time, "sleep"):
        run.return_value.returncode = 0
        WindowsServiceController().stop("SecurityAgent")
    run.assert_called_once()
    assert run.call_args[0][0] == ["sc.exe", "stop", "SecurityAgent"]


def fake_winreg():
    winreg = MagicMock()
    winreg.KEY_WOW64_64KEY = 0x0100
    winreg.KEY_READ = 0x20019
    winreg.KEY_ALL_ACCESS = 0xF003F
    return winreg


def test_registry_read_missing_key_returns_none(environ_64):
    store = WindowsRegistryStore(environ_64)
    store._winreg = fake_winreg()
    store._winreg.OpenKey.side_effect = FileNotFoundError
    assert store.read_values(r"SOFTWARE\SecurityAgent\Agent") is None


def test_registry_read_values_uses_64bit_view(environ_64):
    winreg = fake_winreg()
    entries = [("AgentId", 42, 11), ("OrganizationKey", "acme-hq", 1)]

    def enum_value(key, index):
        if index >= len(entries):
            raise OSError("No more data is available")
        return entries[index]

    winreg.EnumValue.side_effect = enum_value
    store = WindowsRegistryStore(environ_64)
    store._winreg = winreg

    assert store.read_values(r"SOFTWARE\SecurityAgent\Agent") == {"AgentId": 42, "OrganizationKey": "acme-hq"}
    access = winreg.OpenKey.call_args[0][3]
    assert access & winreg.KEY_WOW64_64KEY


def test_registry_delete_missing_key_returns_false(environ_64):
    store = WindowsRegistryStore(environ_64)
    store._winreg = fake_winreg()
    store._winreg.OpenKey.side_effect = FileNotFoundError
    assert store.delete_tree(r"SOFTWARE\SecurityAgent\Agent") is False
    store._winreg.DeleteKeyEx.assert_not_called()


def test_registry_delete_tree_removes_children_first(environ_64):
    winreg = fake_winreg()
    children = {r"SOFTWARE\SecurityAgent\Agent": ["Rio"], r"SOFTWARE\SecurityAgent\Agent\Rio": []}
    handles = {}

    def open_key(root, path, reserved, access):
        handle = MagicMock()
        handle.path = path
        handles[path] = handle
        return handle

    def enum_key(handle, index):
        remaining = children[handle.path]
        if not remaining:
            raise OSError
        return remaining[0]

    def delete_key(root, path, view, reserved):
        children.pop(path)
        parent, _, child = path.rpartition("\\")
        if parent in children:
            children[parent].remove(child)

    winreg.OpenKey.side_effect = open_key
    winreg.EnumKey.side_effect = enum_key
    winreg.DeleteKeyEx.side_effect = delete_key
    store = WindowsRegistryStore(environ_64)
    store._winreg = winreg

    assert store.delete_tree(r"SOFTWARE\SecurityAgent\Agent") is True
    deleted = [c[0][1] for c in winreg.DeleteKeyEx.call_args_list]
    assert deleted == [r"SOFTWARE\SecurityAgent\Agent\Rio", r"SOFTWARE\SecurityAgent\Agent"]
