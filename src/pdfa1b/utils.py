# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Utility functions for PDF/A-1b conversion."""

import logging
import sys
from typing import Any

from pikepdf import Name

from .exceptions import ConversionError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# PDF/A-1 is based on PDF 1.4 (ISO 19005-1, 5.1)
PDFA1_VERSION = "1.4"

# Page sizes in PDF user space units (1/72 inch), portrait
PAGE_SIZES: dict[str, tuple[float, float]] = {
    "a3": (841.8898, 1190.5513),
    "a4": (595.2756, 841.8898),
    "a5": (419.5276, 595.2756),
    "letter": (612.0, 792.0),
    "legal": (612.0, 1008.0),
}

DEFAULT_PAGE_SIZE = "a4"

Log = logging.Logger | logging.LoggerAdapter


def setup_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """Configures logging for pdfa1b.

    Args:
        verbose: If True, DEBUG level is used.
        quiet: If True, only ERROR and higher are output.
            Takes precedence over verbose.

    Returns:
        Configured logger for pdfa1b.
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    pdfa1b_logger = logging.getLogger("pdfa1b")
    pdfa1b_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    pdfa1b_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    pdfa1b_logger.addHandler(handler)

    logger.debug("Logging configured with level: %s", logging.getLevelName(level))
    return pdfa1b_logger


def get_page_size(name: str) -> tuple[float, float]:
    """Looks up a named page size.

    Args:
        name: Page size name, case-insensitive (e.g. 'A4', 'letter').

    Returns:
        ``(width, height)`` in points.

    Raises:
        ConversionError: If the name is unknown.
    """
    try:
        return PAGE_SIZES[name.lower()]
    except KeyError:
        raise ConversionError(
            f"Invalid page size: {name}. Allowed: {', '.join(sorted(PAGE_SIZES))}"
        ) from None


def resolve_indirect(obj: Any) -> Any:
    """Resolve indirect object reference if needed.

    pikepdf objects may be indirect references that need to be resolved.
    This safely handles the resolution without using hasattr which can
    throw exceptions on certain pikepdf object types.

    Args:
        obj: A pikepdf object that may be an indirect reference.

    Returns:
        The resolved object.
    """
    try:
        return obj.get_object()
    except Exception:
        return obj


def object_key(obj: Any) -> tuple[int, int] | None:
    """Return the ``(objnum, gen)`` identity of an indirect object.

    Direct objects report ``(0, 0)`` in pikepdf; they are owned by exactly
    one parent and cannot take part in a cycle, so ``None`` is returned
    for them.
    """
    try:
        objgen = obj.objgen
    except Exception:
        return None
    if objgen == (0, 0):
        return None
    return objgen


def get_inherited_attribute(page_dict: Any, key: str) -> Any:
    """Look up an inheritable page attribute.

    ``/MediaBox``, ``/CropBox``, ``/Resources`` and ``/Rotate`` may be
    defined on an ancestor ``/Pages`` node instead of the page itself.
    Walks the ``/Parent`` chain with cycle detection.

    Args:
        page_dict: The page dictionary.
        key: Attribute name, e.g. ``"/Rotate"``.

    Returns:
        The nearest value, or None if no node in the chain defines it.
    """
    visited: set[tuple[int, int]] = set()
    node = resolve_indirect(page_dict)
    while node is not None:
        objgen = object_key(node)
        if objgen is not None:
            if objgen in visited:
                return None
            visited.add(objgen)
        try:
            value = node.get(key)
        except Exception:
            return None
        if value is not None:
            return value
        try:
            parent = node.get(Name.Parent)
        except Exception:
            return None
        node = resolve_indirect(parent) if parent is not None else None
    return None
