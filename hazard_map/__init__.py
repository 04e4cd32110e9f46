"""Hazard map: report and view hazard events on a shared Firestore-backed map."""

__version__ = "0.1.0"
