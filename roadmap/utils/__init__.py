"""Shared helpers: browser fingerprints and notification email."""
