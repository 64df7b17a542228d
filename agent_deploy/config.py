"""
Deployment configuration.
Constants describing the installed agent, plus the immutable DeployConfig
built once by the CLI and handed to every step.
"""

from dataclasses import dataclass
from typing import Optional

from agent_deploy.errors import ConfigurationError

# ====================================================
# ---- Placeholders & Defaults ----
# ====================================================
ACCOUNT_KEY_PLACEHOLDER = "__ACCOUNT_KEY__"
ORGANIZATION_KEY_PLACEHOLDER = "__ORGANIZATION_KEY__"
ACCOUNT_KEY_LENGTH = 32

DEFAULT_BASE_URL = "https://agent.example.com/download"
INSTALLER_NAME = "AgentInstaller.exe"
DEFAULT_INSTALL_TIMEOUT = 30
DEFAULT_GRACE_PERIOD = 8

SUPPORT_MESSAGE = "Please send the deployment log to support@example.com for assistance."

# ====================================================
# ---- Installed Agent Layout ----
# ====================================================
INSTALL_DIR_NAME = "SecurityAgent"
AGENT_EXE = "SecurityAgent.exe"
UPDATER_EXE = "SecurityAgentUpdater.exe"
UNINSTALL_EXE = "Uninstall.exe"
EXPECTED_FILES = (AGENT_EXE, UPDATER_EXE, UNINSTALL_EXE)

AGENT_SERVICE = "SecurityAgent"
UPDATER_SERVICE = "SecurityAgentUpdater"
SERVICES = (AGENT_SERVICE, UPDATER_SERVICE)

REGISTRY_KEY = r"SOFTWARE\SecurityAgent\Agent"
AGENT_ID_VALUE = "AgentId"
ORGANIZATION_KEY_VALUE = "OrganizationKey"
TAGS_VALUE = "Tags"
REGISTRY_VALUES = (AGENT_ID_VALUE, ORGANIZATION_KEY_VALUE, TAGS_VALUE)

MASK_VISIBLE = 8
MASK_SUFFIX = "X" * 23


@dataclass(frozen=True)
class DeployConfig:
    account_key: str = ACCOUNT_KEY_PLACEHOLDER
    organization_key: str = ORGANIZATION_KEY_PLACEHOLDER
    reregister: bool = False
    reinstall: bool = False
    base_url: str = DEFAULT_BASE_URL
    installer_name: str = INSTALLER_NAME
    install_timeout: int = DEFAULT_INSTALL_TIMEOUT
    grace_period: float = DEFAULT_GRACE_PERIOD
    tags: Optional[str] = None
    log_bucket: Optional[str] = None
    slack_webhook_url: Optional[str] = None

    @property
    def download_url(self):
        return f"{self.base_url.rstrip('/')}/{self.account_key}/{self.installer_name}"

    @property
    def masked_account_key(self):
        return mask_account_key(self.account_key)


def mask_account_key(account_key):
    """Keep the first 8 characters of the key and hide the rest behind a fixed mask."""
    return account_key[:MASK_VISIBLE] + MASK_SUFFIX


def validate_parameters(config):
    """Fail fast on bad credentials or conflicting mode flags, before touching the host."""
    if config.account_key == ACCOUNT_KEY_PLACEHOLDER:
        raise ConfigurationError("--account-key is required and was not set")
    if len(config.account_key) != ACCOUNT_KEY_LENGTH:
        raise ConfigurationError(
            f"Invalid --account-key: expected {ACCOUNT_KEY_LENGTH} characters, "
            f"got {len(config.account_key)} ({config.masked_account_key})"
        )
    if config.organization_key == ORGANIZATION_KEY_PLACEHOLDER:
        raise ConfigurationError("--organization-key is required and was not set")
    if not config.organization_key:
        raise ConfigurationError("Invalid --organization-key: value is empty")
    if config.reregister and config.reinstall:
        raise ConfigurationError("--reregister and --reinstall cannot be used together")
    if config.install_timeout <= 0:
        raise ConfigurationError(f"Invalid --timeout: {config.install_timeout}")
