"""
Shared pytest fixtures for agent deployment tests.

Provides in-memory fakes for the registry and the service manager so that
verification and cleanup run without touching the host.
"""

import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from agent_deploy import config as cfg
from agent_deploy.config import DeployConfig

VALID_ACCOUNT_KEY = "ABCDEFGH1234567890ABCDEFGH123456"
PROGRAM_FILES = r"C:\Program Files"
PROGRAM_FILES_X86 = r"C:\Program Files (x86)"


class FakeConfigStore:
    def __init__(self, keys=None):
        self.keys = dict(keys or {})
        self.deleted = []

    def read_values(self, path):
        values = self.keys.get(path)
        return dict(values) if values is not None else None

    def delete_tree(self, path):
        self.deleted.append(path)
        removed = [k for k in self.keys if k == path or k.startswith(path + "\\")]
        for k in removed:
            del self.keys[k]
        return bool(removed)


class FakeServiceController:
    def __init__(self, statuses=None):
        self.statuses = dict(statuses or {})
        self.stopped = []

    def status(self, name):
        return self.statuses.get(name)

    def exists(self, name):
        return name in self.statuses

    def stop(self, name):
        self.stopped.append(name)
        if name in self.statuses:
            self.statuses[name] = "stopped"


@pytest.fixture
def environ_64():
    return {
        "PROCESSOR_ARCHITECTURE": "AMD64",
        "ProgramFiles": PROGRAM_FILES,
        "ProgramW6432": PROGRAM_FILES,
        "ProgramFiles(x86)": PROGRAM_FILES_X86,
    }


@pytest.fixture
def config():
    return DeployConfig(account_key=VALID_ACCOUNT_KEY, organization_key="acme-hq", grace_period=0)


@pytest.fixture
def installed_store():
    return FakeConfigStore({
        cfg.REGISTRY_KEY: {
            cfg.AGENT_ID_VALUE: 123456,
            cfg.ORGANIZATION_KEY_VALUE: "acme-hq",
            cfg.TAGS_VALUE: "",
        },
    })


@pytest.fixture
def running_services():
    return FakeServiceController({name: "running" for name in cfg.SERVICES})


@pytest.fixture
def all_files_exist():
    return lambda path: True


@pytest.fixture(autouse=True)
def reset_logger(tmp_path, monkeypatch):
    monkeypatch.setattr("tempfile.tempdir", str(tmp_path))
    yield
    logger = logging.getLogger("agent_deploy")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
