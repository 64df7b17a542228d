"""
Logging setup for deployment runs.
Every run logs to stdout and to a timestamped file in the temp directory;
the file can be shipped to S3 when a log bucket is configured.
"""

import logging
import os
import socket
import sys
import tempfile
from datetime import datetime, timezone

import boto3

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
S3_LOGS_PREFIX = "agent-deploy-logs"


def setup_logger(log_dir=None):
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_file = os.path.join(log_dir or tempfile.gettempdir(), f"agent-deploy-{ts}.log")

    logger = logging.getLogger("agent_deploy")
    logger.setLevel(logging.INFO)
    # Repeated runs in one interpreter (tests, status then install) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console)

    fh = logging.FileHandler(log_file)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(fh)

    return logger, log_file


def upload_log(log_file, bucket, s3=None):
    """Upload the run log to S3. Never raises: a lost log must not fail the deployment."""
    logger = logging.getLogger("agent_deploy")
    try:
        s3 = s3 or boto3.client("s3")
        ts = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        key = f"{S3_LOGS_PREFIX}/{socket.gethostname()}/{ts}/{os.path.basename(log_file)}"
        for handler in logger.handlers:
            handler.flush()
        s3.upload_file(log_file, bucket, key)
        logger.info(f"Uploaded deployment log to s3://{bucket}/{key}")
        return key
    except Exception as e:
        logger.error(f"Failed to upload log to S3: {e}")
        return None
