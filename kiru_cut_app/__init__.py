"""
KiruCut: lossless video trimming on top of ffmpeg.
"""

__version__ = "0.1.0"
