"""
Post-install verification and pre-install cleanup.
"""

import logging
import ntpath
import os
import time
from dataclasses import dataclass

from agent_deploy import config as cfg
from agent_deploy.errors import VerificationError
from agent_deploy.system import program_files_dir

logger = logging.getLogger(__name__)


@dataclass
class Check:
    name: str
    ok: bool
    detail: str


def install_dir(environ=None):
    return ntpath.join(program_files_dir(environ), cfg.INSTALL_DIR_NAME)


def file_present(path):
    return os.path.isfile(path)


def agent_id_registered(agent_id):
    if agent_id is None:
        return False
    if isinstance(agent_id, int):
        return agent_id != 0
    return str(agent_id).strip() not in ("", "0")


def iter_checks(store, services, environ=None, exists=None):
    """
    Yield the installation checks in order: files, registry, services, agent id.

    Lazily evaluated so a caller that stops at the first failure never
    touches the later facilities.
    """
    exists = exists or file_present
    directory = install_dir(environ)
    for name in cfg.EXPECTED_FILES:
        path = ntpath.join(directory, name)
        found = exists(path)
        yield Check(f"file {name}", found, path if found else f"{path} is missing")

    values = store.read_values(cfg.REGISTRY_KEY)
    key_label = f"HKLM\\{cfg.REGISTRY_KEY}"
    yield Check(f"registry key {key_label}", values is not None,
                "present" if values is not None else f"{key_label} does not exist")
    values = values or {}
    for name in cfg.REGISTRY_VALUES:
        present = name in values
        yield Check(f"registry value {name}", present,
                    str(values[name]) if present else f"{key_label}\\{name} is missing")

    for name in cfg.SERVICES:
        status = services.status(name)
        if status is None:
            yield Check(f"service {name}", False, f"service {name} is not installed")
        else:
            yield Check(f"service {name}", status == "running", status)

    agent_id = values.get(cfg.AGENT_ID_VALUE)
    yield Check("agent registration", agent_id_registered(agent_id),
                f"{cfg.AGENT_ID_VALUE}={agent_id}" if agent_id_registered(agent_id)
                else f"{cfg.AGENT_ID_VALUE} is {agent_id!r}, the agent did not register with the backend")


def verify_installation(config, store, services, environ=None, sleep=None, exists=None):
    logger.info(f"Waiting {config.grace_period} seconds for the agent to start and register")
    (sleep or time.sleep)(config.grace_period)
    logger.info(f"Verifying installation in {install_dir(environ)}")
    for check in iter_checks(store, services, environ, exists):
        if not check.ok:
            raise VerificationError(f"Installation check failed ({check.name}): {check.detail}")
        logger.info(f"OK {check.name}: {check.detail}")


def stop_services(services):
    for name in cfg.SERVICES:
        services.stop(name)


def prepare_reregistration(store, services):
    """Stop the agent and wipe its persisted identity so the next install registers anew."""
    stop_services(services)
    if store.delete_tree(cfg.REGISTRY_KEY):
        logger.info(f"Removed HKLM\\{cfg.REGISTRY_KEY}")
    else:
        logger.info(f"HKLM\\{cfg.REGISTRY_KEY} was already absent")
