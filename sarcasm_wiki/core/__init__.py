"""Core configuration, logging and file helpers."""
