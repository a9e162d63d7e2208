"""Database layer for Fabrica."""
