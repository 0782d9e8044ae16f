"""Shared utilities: errors, logging, retry, text and JSON helpers."""
