"""Locate, download and launch Chrome or Chromium for remote debugging."""

__version__ = "0.1.0"