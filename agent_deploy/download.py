"""
Installer download over HTTPS, pinned to TLS 1.2 or newer.
"""

import logging
import os
import ssl
import tempfile

import requests
from requests.adapters import HTTPAdapter

from agent_deploy.errors import DownloadError

logger = logging.getLogger(__name__)

TLS_PATCH_MESSAGE = (
    "TLS 1.2 is not available on this host. Install the operating system update "
    "that enables TLS 1.2 (KB3140245 on Windows 7 / Server 2008 R2) and retry."
)
CHUNK_SIZE = 64 * 1024
REQUEST_TIMEOUT = 60


class TLS12Adapter(HTTPAdapter):
    """Transport adapter refusing anything older than TLS 1.2."""

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = tls12_context()
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, *args, **kwargs):
        kwargs["ssl_context"] = tls12_context()
        return super().proxy_manager_for(*args, **kwargs)


def tls12_context():
    if not getattr(ssl, "HAS_TLSv1_2", False):
        raise DownloadError(TLS_PATCH_MESSAGE)
    context = ssl.create_default_context()
    if context.minimum_version < ssl.TLSVersion.TLSv1_2:
        logger.info("Raising minimum TLS version to 1.2")
        context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


def build_session():
    session = requests.Session()
    session.mount("https://", TLS12Adapter())
    return session


def download_installer(config, dest_dir=None, session=None):
    """Fetch the installer for the configured account into the temp directory and return its path."""
    dest = os.path.join(dest_dir or tempfile.gettempdir(), config.installer_name)
    url = config.download_url
    if not url.startswith("https://"):
        raise DownloadError(f"Refusing to download installer over a non-HTTPS URL: {url}")

    # The account key is part of the URL, keep it out of the log
    logger.info(f"Downloading {config.installer_name} for account {config.masked_account_key} to {dest}")
    session = session or build_session()
    try:
        with session.get(url, stream=True, timeout=REQUEST_TIMEOUT) as resp:
            resp.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
    except requests.exceptions.HTTPError as e:
        raise DownloadError(
            f"Installer download failed with HTTP {e.response.status_code}. "
            "Check that the account key is correct."
        ) from e
    except (requests.exceptions.RequestException, OSError) as e:
        reason = str(e).replace(config.account_key, config.masked_account_key)
        raise DownloadError(f"Installer download failed: {reason}") from e

    if not os.path.isfile(dest):
        raise DownloadError(f"Installer was not found at {dest} after download")
    logger.info(f"Installer downloaded to {dest} ({os.path.getsize(dest)} bytes)")
    return dest
