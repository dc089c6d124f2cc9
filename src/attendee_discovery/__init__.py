"""Attendee terminal discovery and management for the attendance admin panel."""

__version__ = "0.3.0"
