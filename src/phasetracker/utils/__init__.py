"""Shared utilities: configuration, logging, errors and time formatting."""
