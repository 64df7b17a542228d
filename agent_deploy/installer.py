"""
Runs the downloaded installer silently, bounded by a timeout.
"""

import logging
import subprocess

from agent_deploy.errors import InstallError, InstallTimeoutError

logger = logging.getLogger(__name__)


def installer_args(config):
    args = [f"/ACCT_KEY={config.account_key}", f"/ORG_KEY={config.organization_key}"]
    if config.tags:
        args.append(f"/TAGS={config.tags}")
    args.append("/S")
    return args


def run_installer(file_path, config, timeout=None):
    """
    Launch the installer and wait for it to exit.

    The exit code is logged but not acted on: success is judged afterwards
    from the state of the host, not from what the installer reports.
    """
    timeout = timeout or config.install_timeout
    logger.info(f"Running installer {file_path} (timeout {timeout}s)")
    try:
        proc = subprocess.Popen([file_path] + installer_args(config))
    except OSError as e:
        raise InstallError(f"Unable to launch installer {file_path}: {e}") from e
    try:
        code = proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.error(f"Installer did not finish within {timeout} seconds, terminating it")
        proc.kill()
        proc.wait()
        raise InstallTimeoutError(
            f"Installer timed out after {timeout} seconds. Security software on this "
            "host may be blocking its execution."
        )
    logger.info(f"Installer exited with code {code}")
    return code
