"""
Authenticode verification of the downloaded installer.
The signer certificate's trust chain is rebuilt by PowerShell/.NET and reported back as JSON.
"""

import json
import logging
import subprocess

from agent_deploy.errors import IntegrityError

logger = logging.getLogger(__name__)

POWERSHELL = "powershell.exe"
VERIFY_TIMEOUT = 60

# $args[0] is the installer path
CHAIN_SCRIPT = r"""
$ErrorActionPreference = 'Stop'
$sig = Get-AuthenticodeSignature -FilePath $args[0]
$result = @{ Status = [string]$sig.Status; Subject = $null; Thumbprint = $null; ChainValid = $false; ChainStatus = @() }
if ($sig.SignerCertificate) {
    $result.Subject = $sig.SignerCertificate.Subject
    $result.Thumbprint = $sig.SignerCertificate.Thumbprint
    $chain = New-Object Security.Cryptography.X509Certificates.X509Chain
    $result.ChainValid = $chain.Build($sig.SignerCertificate)
    $result.ChainStatus = @($chain.ChainStatus | ForEach-Object { [string]$_.Status })
}
$result | ConvertTo-Json -Compress
"""


def _run_powershell(file_path):
    cmd = [POWERSHELL, "-NoProfile", "-NonInteractive", "-Command", CHAIN_SCRIPT, file_path]
    return subprocess.run(cmd, capture_output=True, text=True, timeout=VERIFY_TIMEOUT)


def verify_installer(file_path):
    """Raise IntegrityError unless the installer carries a signature with a valid trust chain."""
    logger.info(f"Verifying digital signature of {file_path}")
    try:
        p = _run_powershell(file_path)
    except (OSError, subprocess.SubprocessError) as e:
        raise IntegrityError(f"Unable to verify installer signature: {e}") from e
    if p.returncode != 0:
        raise IntegrityError(f"Signature chain construction failed: {p.stderr.strip() or p.stdout.strip()}")

    try:
        info = json.loads(p.stdout)
    except ValueError as e:
        raise IntegrityError(f"Unexpected signature check output: {p.stdout.strip()!r}") from e

    if not info.get("Subject"):
        raise IntegrityError(
            f"Installer {file_path} has no signing certificate (status {info.get('Status')}). "
            "The download may be corrupted or tampered with."
        )
    if not info.get("ChainValid"):
        chain_status = ", ".join(info.get("ChainStatus") or []) or "unknown"
        raise IntegrityError(
            f"Signing certificate chain for {info['Subject']} is not trusted ({chain_status}). "
            "The download may be corrupted or tampered with."
        )
    logger.info(f"Installer signed by {info['Subject']} (thumbprint {info.get('Thumbprint')})")
    return info
