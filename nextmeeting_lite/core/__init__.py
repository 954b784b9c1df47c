"""Core services: configuration, timezones and HTTP."""
