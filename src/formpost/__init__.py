"""
Streaming multipart/form-data encoder, producing request bodies lazily so
large files are never held in memory.
"""

# Set default logging handler to avoid "No handler found" warnings.
import logging
from logging import NullHandler
from typing import TextIO

from . import exceptions
from ._version import __version__
from .fields import DEFAULT_CONTENT_TYPE, FormField, guess_content_type
from .filepost import (
    BOUNDARY_PREFIX,
    FormData,
    choose_boundary,
    encode_multipart_formdata,
)
from .stream import DEFAULT_CHUNK_SIZE, FormDataStream

__license__ = "MIT"
__version__ = __version__

__all__ = (
    "BOUNDARY_PREFIX",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_CONTENT_TYPE",
    "FormData",
    "FormDataStream",
    "FormField",
    "add_stderr_logger",
    "choose_boundary",
    "encode_multipart_formdata",
    "exceptions",
    "guess_content_type",
)

logging.getLogger(__name__).addHandler(NullHandler())


def add_stderr_logger(level: int = logging.DEBUG) -> "logging.StreamHandler[TextIO]":
    """
    Helper for quickly adding a StreamHandler to the logger. Useful for
    debugging.

    Returns the handler after adding it.
    """
    # This method needs to be in this __init__.py to get the __name__ correct
    # even if formpost is vendored within another package.
    logger = logging.getLogger(__name__)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.debug("Added a stderr logging handler to logger: %s", __name__)
    return handler


# ... Clean up.
del NullHandler
