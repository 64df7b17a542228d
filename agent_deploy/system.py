"""
Host capabilities used by verification and cleanup.

ConfigStore and ServiceController are the seams between the deployment steps
and the operating system; the Windows implementations wrap the registry
(winreg) and the service manager (psutil + sc.exe).
"""

import logging
import os
import platform
import socket
import struct
import subprocess
import time
from typing import Optional, Protocol, runtime_checkable

import psutil

logger = logging.getLogger(__name__)

SERVICE_STOP_TIMEOUT = 30


@runtime_checkable
class ConfigStore(Protocol):
    """Hierarchical key/value store holding the agent's persisted configuration."""

    def read_values(self, path: str) -> Optional[dict]:
        """Return the named values under `path`, or None when the key is absent."""
        ...

    def delete_tree(self, path: str) -> bool:
        """Delete `path` and everything below it. Returns False when it did not exist."""
        ...


@runtime_checkable
class ServiceController(Protocol):
    def exists(self, name: str) -> bool:
        ...

    def status(self, name: str) -> Optional[str]:
        """Service state ("running", "stopped", ...) or None when not registered."""
        ...

    def stop(self, name: str) -> None:
        ...


# ====================================================
# ---- Host Facts ----
# ====================================================
def process_bits():
    return struct.calcsize("P") * 8


def is_64bit_os(environ=None):
    environ = os.environ if environ is None else environ
    # A 32-bit process on 64-bit Windows sees the real architecture in PROCESSOR_ARCHITEW6432
    arch = environ.get("PROCESSOR_ARCHITEW6432") or environ.get("PROCESSOR_ARCHITECTURE") or platform.machine()
    return arch.upper().endswith("64")


def program_files_dir(environ=None):
    environ = os.environ if environ is None else environ
    default = environ.get("ProgramFiles", r"C:\Program Files")
    if is_64bit_os(environ):
        return environ.get("ProgramW6432", default)
    return default


def host_info(environ=None):
    return {
        "hostname": socket.gethostname(),
        "os": platform.platform(),
        "architecture": f"{'64' if is_64bit_os(environ) else '32'}-bit OS, {process_bits()}-bit process",
    }


# ====================================================
# ---- Windows Implementations ----
# ====================================================
class WindowsRegistryStore:
    """HKEY_LOCAL_MACHINE, always through the native registry view of the OS."""

    def __init__(self, environ=None):
        self.environ = environ
        self._winreg = None

    @property
    def winreg(self):
        if self._winreg is None:
            import winreg

            self._winreg = winreg
        return self._winreg

    @property
    def view(self):
        return self.winreg.KEY_WOW64_64KEY if is_64bit_os(self.environ) else 0

    def read_values(self, path):
        winreg = self.winreg
        try:
            key = winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, path, 0, winreg.KEY_READ | self.view)
        except FileNotFoundError:
            return None
        values = {}
        with key:
            index = 0
            while True:
                try:
                    name, data, _ = winreg.EnumValue(key, index)
                except OSError:
                    break
                values[name] = data
                index += 1
        return values

    def delete_tree(self, path):
        winreg = self.winreg
        try:
            key = winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, path, 0, winreg.KEY_ALL_ACCESS | self.view)
        except FileNotFoundError:
            return False
        with key:
            while True:
                try:
                    child = winreg.EnumKey(key, 0)
                except OSError:
                    break
                self.delete_tree(f"{path}\\{child}")
        winreg.DeleteKeyEx(winreg.HKEY_LOCAL_MACHINE, path, self.view, 0)
        return True


class WindowsServiceController:
    def __init__(self, stop_timeout=SERVICE_STOP_TIMEOUT):
        self.stop_timeout = stop_timeout

    def status(self, name):
        try:
            return psutil.win_service_get(name).status()
        except psutil.NoSuchProcess:
            return None

    def exists(self, name):
        return self.status(name) is not None

    def stop(self, name):
        status = self.status(name)
        if status is None:
            logger.info(f"Service {name} is not installed, nothing to stop")
            return
        if status == "stopped":
            return
        logger.info(f"Stopping service {name}")
        p = subprocess.run(["sc.exe", "stop", name], capture_output=True, text=True)
        if p.returncode != 0:
            logger.warning(f"sc.exe stop {name} returned {p.returncode}: {p.stdout.strip()}")
        deadline = time.monotonic() + self.stop_timeout
        while time.monotonic() < deadline:
            if self.status(name) in (None, "stopped"):
                logger.info(f"Service {name} stopped")
                return
            time.sleep(1)
        logger.warning(f"Service {name} did not stop within {self.stop_timeout} seconds")
