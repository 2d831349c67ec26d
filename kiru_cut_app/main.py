#!/usr/bin/env python3
"""
Main entry point for the KiruCut trimming app.
"""
import sys
import logging
import argparse
from pathlib import Path

from PySide6.QtWidgets import QApplication

from kiru_cut_app.config import LOG_PATH
from kiru_cut_app.data.settings_store import SettingsStore
from kiru_cut_app.ui.event_bus import BUS
from kiru_cut_app.ui.main_window import MainWindow


# Configure logging
def setup_logging(verbose=False):
    """Set up logging configuration."""
    log_level = logging.DEBUG if verbose else logging.INFO
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(LOG_PATH)
        ]
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Lossless video trimming with ffmpeg')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    parser.add_argument('input', nargs='?', type=Path, help='Video file to open')

    args = parser.parse_args()
    setup_logging(args.verbose)

    logger = logging.getLogger(__name__)
    logger.info("Starting KiruCut")

    app = QApplication(sys.argv)
    app.setOrganizationName("KiruCut")
    app.setApplicationName("KiruCut")

    settings = SettingsStore()
    settings.apply_launch_defaults()

    window = MainWindow(settings=settings)
    window.show()

    if args.input is not None:
        BUS.inputSelected.emit(args.input)
    else:
        window.prompt_for_input_on_launch()

    sys.exit(app.exec())


if __name__ == '__main__':
    main()
