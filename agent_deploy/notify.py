"""
Slack notification of the deployment result.
"""

import logging
import socket

import requests

logger = logging.getLogger(__name__)


def notify_slack(webhook_url, succeeded, detail, config=None):
    hostname = socket.gethostname()
    org = f" ({config.organization_key})" if config is not None else ""
    if succeeded:
        msg = f"✅ Agent deployment on {hostname}{org} succeeded: {detail}"
    else:
        msg = f"❌ Agent deployment on {hostname}{org} failed: {detail}"
    try:
        resp = requests.post(webhook_url, json={"text": msg}, timeout=10)
        resp.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to notify Slack: {e}")
        return False
    return True
