"""A user-space model of a small Unix-like kernel's file system, devices and tools."""

__version__ = "0.1.0"