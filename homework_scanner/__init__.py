"""Capture, upload and recognise homework documents."""

__version__ = "0.1.0"
