"""Canvass reconciliation service package."""
