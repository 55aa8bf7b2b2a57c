import logging
import sys

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Console-only logging (stdout), cloud friendly."""
    root = logging.getLogger()
    root.setLevel(level.upper())

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level.upper())
    console_handler.setFormatter(formatter)

    # Hapus handler lama supaya log tidak dobel kalau dipanggil dua kali
    if root.hasHandlers():
        root.handlers.clear()

    root.addHandler(console_handler)
    return root
