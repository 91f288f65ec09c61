"""Credwarden - PBKDF2 credential verification and password policy service."""

__description__ = "Credential verification and password policy."
__author__ = "credwarden contributors"
__version__ = "0.3.0"
