"""Shared utilities for Fabrica."""
