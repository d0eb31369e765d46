"""Event-driven image workflow: presigned uploads, validation, resize and exposure."""

__version__ = "0.1.0"
