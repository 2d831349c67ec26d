"""
UI package for the KiruCut trimming app.
"""

from .main_window import MainWindow
