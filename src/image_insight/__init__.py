"""image-insight - AI-generated titles, captions and literary excerpts for photos."""

__version__ = "0.1.0"
__author__ = "image-insight contributors"
__license__ = "MIT"

import logging

# Public API
from .cli import main as cli_main

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "cli_main",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
