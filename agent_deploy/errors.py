"""
Error taxonomy for agent deployment.
Every error is fatal to the run; the CLI maps them to exit code 1.
"""


class DeploymentError(Exception):
    """Base class for all deployment failures."""

    # Configuration errors are the operator's to fix, everything else goes to support
    contact_support = True


class ConfigurationError(DeploymentError):
    contact_support = False


class DownloadError(DeploymentError):
    pass


class IntegrityError(DeploymentError):
    pass


class InstallError(DeploymentError):
    pass


class InstallTimeoutError(InstallError):
    pass


class VerificationError(DeploymentError):
    pass
