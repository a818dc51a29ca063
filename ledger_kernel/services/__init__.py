"""Kernel services: single-document writes and report-period persistence."""
