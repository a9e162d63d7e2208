"""Fabrica admin: tenant membership and onboarding service."""

__version__ = "0.1.0"
