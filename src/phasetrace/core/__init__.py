"""Core infrastructure: configuration loading and logging setup."""
