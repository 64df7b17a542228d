#!/usr/bin/env python3
"""
Agent deployment CLI.

install: download, verify and install the security agent on this host, then
         confirm the agent is running and registered.
status:  report the installation checks without changing anything.

Usage:
  agent-deploy install --account-key <32 chars> --organization-key <org> [--reregister | --reinstall]
  agent-deploy status
"""

import sys

import click
from tabulate import tabulate

from agent_deploy import config as cfg
from agent_deploy.config import DeployConfig
from agent_deploy.errors import DeploymentError
from agent_deploy.logger import setup_logger, upload_log
from agent_deploy.notify import notify_slack
from agent_deploy.orchestrator import DeploymentOrchestrator, Outcome
from agent_deploy.system import WindowsRegistryStore, WindowsServiceController
from agent_deploy.verify import install_dir, iter_checks


def build_capabilities():
    return WindowsRegistryStore(), WindowsServiceController()


def finish(config, logger, log_file, succeeded, detail):
    logger.info(f"Deployment log: {log_file}")
    if config.slack_webhook_url:
        notify_slack(config.slack_webhook_url, succeeded, detail, config)
    if config.log_bucket:
        upload_log(log_file, config.log_bucket)


# ====================================================
# ---- CLI Commands ----
# ====================================================
@click.group()
def cli():
    """CLI tool for security agent deployment on a single host"""
    pass


@cli.command()
@click.option("--account-key", default=cfg.ACCOUNT_KEY_PLACEHOLDER, envvar="AGENT_ACCOUNT_KEY",
              help="32 character account key")
@click.option("--organization-key", default=cfg.ORGANIZATION_KEY_PLACEHOLDER, envvar="AGENT_ORGANIZATION_KEY",
              help="Organization this host belongs to")
@click.option("--reregister", is_flag=True, help="Remove the agent identity and register the host anew")
@click.option("--reinstall", is_flag=True, help="Stop the agent services and install over the top")
@click.option("--tags", default=None, envvar="AGENT_TAGS", help="Tags passed to the installer")
@click.option("--timeout", "install_timeout", default=cfg.DEFAULT_INSTALL_TIMEOUT, type=int,
              envvar="AGENT_INSTALL_TIMEOUT", show_default=True, help="Installer timeout in seconds")
@click.option("--base-url", default=cfg.DEFAULT_BASE_URL, envvar="AGENT_DOWNLOAD_BASE_URL",
              show_default=True, help="Installer download base URL")
@click.option("--log-bucket", default=None, envvar="AGENT_LOG_BUCKET", help="S3 bucket for the deployment log")
@click.option("--slack-webhook", "slack_webhook_url", default=None, envvar="SLACK_WEBHOOK_URL",
              help="Slack webhook notified with the result")
def install(account_key, organization_key, reregister, reinstall, tags, install_timeout, base_url,
            log_bucket, slack_webhook_url):
    """Install the agent on this host"""
    logger, log_file = setup_logger()
    config = DeployConfig(
        account_key=account_key,
        organization_key=organization_key,
        reregister=reregister,
        reinstall=reinstall,
        tags=tags,
        install_timeout=install_timeout,
        base_url=base_url,
        log_bucket=log_bucket,
        slack_webhook_url=slack_webhook_url,
    )
    store, services = build_capabilities()
    try:
        outcome = DeploymentOrchestrator(config, store, services).run()
    except DeploymentError as e:
        logger.error(str(e))
        if not e.contact_support:
            # Configuration errors: nothing has touched the host or the network yet
            sys.exit(1)
        logger.error(cfg.SUPPORT_MESSAGE)
        finish(config, logger, log_file, False, str(e))
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error during deployment: {e}")
        logger.error(cfg.SUPPORT_MESSAGE)
        finish(config, logger, log_file, False, f"unexpected error: {e}")
        sys.exit(1)

    if outcome is Outcome.ALREADY_INSTALLED:
        finish(config, logger, log_file, True, "agent already installed")
        logger.info("Agent is already installed, exiting")
    else:
        finish(config, logger, log_file, True, "agent installed and registered")
        logger.info("Agent installation completed successfully")


@cli.command()
def status():
    """Show the installation checks for this host"""
    logger, _ = setup_logger()
    store, services = build_capabilities()
    try:
        checks = list(iter_checks(store, services))
    except Exception as e:
        logger.error(f"Unable to inspect the installation: {e}")
        sys.exit(1)
    table = [[c.name, "OK" if c.ok else "FAIL", c.detail] for c in checks]
    click.echo(f"Install directory: {install_dir()}")
    click.echo(tabulate(table, headers=["Check", "Result", "Detail"], tablefmt="pretty"))
    failed = [c for c in checks if not c.ok]
    if failed:
        logger.error(f"{len(failed)} of {len(checks)} checks failed")
        sys.exit(1)
    logger.info("All installation checks passed")


def main():
    cli()


# ====================================================
# ---- Main Entrypoint ----
# ====================================================
if __name__ == "__main__":
    main()
