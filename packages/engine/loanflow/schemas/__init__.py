# This project was developed with assistance from AI tools.
"""Shared schema components."""

from .context import OperationContext

__all__ = ["OperationContext"]
