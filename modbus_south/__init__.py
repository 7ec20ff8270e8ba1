"""Modbus TCP/RTU south plugin: register map polling into named measurements."""

__version__ = "1.0.0"
