"""Roster reconciliation: keep a member roster in sync with external exports."""

__version__ = "0.1.0"
