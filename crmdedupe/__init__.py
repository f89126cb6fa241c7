"""Conflict resolution and merge orchestration for duplicate CRM contacts."""

__version__ = "0.1.0"
