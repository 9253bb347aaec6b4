"""Shared errors, constants and logging helpers for TokenVault."""
