"""Signed HTTPS weather forecast service: request handling, grid projection and signing."""

__version__ = "0.1.0"