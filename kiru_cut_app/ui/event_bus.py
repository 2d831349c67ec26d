"""
Centralized event bus for the KiruCut application.

This module provides a singleton SignalBus class that acts as a central
event hub between the window's pickers and the trim session controller.
"""
import logging
from pathlib import Path
from PySide6.QtCore import QObject, Signal

logger = logging.getLogger(__name__)


class SignalBus(QObject):
    """Centralized signal hub for the application.

    Provides typed signals for communication between components without
    requiring direct dependencies between them.
    """
    # ===== user-actions =====
    inputSelected = Signal(Path)                # from the input picker
    outputSelected = Signal(Path)               # from the output picker
    trimSelected = Signal(float, float)         # start_sec, end_sec (slider / preview)


# Create a singleton instance for import by other modules
BUS = SignalBus()

# Export only the BUS instance for cleaner imports
__all__ = ["BUS"]
