"""Terminal output for voice session state."""

from .status_display import StatusDisplay

__all__ = ["StatusDisplay"]
