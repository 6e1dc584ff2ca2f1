"""
Command line interface for the smart account SDK.
"""
from .main import app

__all__ = ["app"]
