"""
Top-level deployment procedure: validate, clean up, download, verify, install, verify again.
"""

import enum
import logging

from agent_deploy import config as cfg
from agent_deploy.config import validate_parameters
from agent_deploy.download import download_installer
from agent_deploy.installer import run_installer
from agent_deploy.signature import verify_installer
from agent_deploy.system import host_info
from agent_deploy.verify import prepare_reregistration, stop_services, verify_installation

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    INSTALLED = "installed"
    ALREADY_INSTALLED = "already_installed"


class DeploymentOrchestrator:
    def __init__(self, config, store, services, environ=None, session=None,
                 download_dir=None, sleep=None, exists=None):
        self.config = config
        self.store = store
        self.services = services
        self.environ = environ
        self.session = session
        self.download_dir = download_dir
        self.sleep = sleep
        self.exists = exists

    def log_diagnostics(self):
        info = host_info(self.environ)
        logger.info(f"Account key: {self.config.masked_account_key}")
        logger.info(f"Organization key: {self.config.organization_key}")
        logger.info(f"Host name: {info['hostname']}")
        logger.info(f"Operating system: {info['os']}")
        logger.info(f"Architecture: {info['architecture']}")

    def prepare(self):
        """Run the cleanup branch for the selected mode. Returns False when there is nothing to do."""
        if self.config.reregister:
            logger.info("Re-registration requested: stopping services and removing agent configuration")
            prepare_reregistration(self.store, self.services)
        elif self.config.reinstall:
            logger.info("Reinstall requested: stopping services")
            stop_services(self.services)
        elif self.services.exists(cfg.AGENT_SERVICE):
            logger.info(f"Service {cfg.AGENT_SERVICE} is already installed, nothing to do. "
                        "Use --reinstall or --reregister to force installation.")
            return False
        return True

    def run(self):
        validate_parameters(self.config)
        self.log_diagnostics()
        if not self.prepare():
            return Outcome.ALREADY_INSTALLED

        path = download_installer(self.config, self.download_dir, self.session)
        verify_installer(path)
        run_installer(path, self.config)
        verify_installation(self.config, self.store, self.services, self.environ, self.sleep, self.exists)
        logger.info("Agent installation verified")
        return Outcome.INSTALLED
