"""
Interfaces module - adapters for the editor core.

Provides adapters connecting the core editing logic with
rendering and other UI collaborators.
"""

from .render_adapter import OverlayRenderer

__all__ = ['OverlayRenderer']
