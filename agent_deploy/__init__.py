"""Unattended deployment and verification of the security agent on Windows hosts."""

__version__ = "1.0.0"
