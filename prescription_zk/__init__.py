"""Prescription validation as a zero-knowledge constraint system."""

__version__ = "0.1.0"
