# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Soft mask removal from Form XObjects (ISO 19005-1, 6.4)."""

import logging

from pikepdf import Name, Pdf

from ..utils import Log
from .base import iter_page_resources, walk_form_xobjects

logger = logging.getLogger(__name__)


def strip_soft_masks(pdf: Pdf, *, log: Log | None = None) -> int:
    """Remove ``/SMask`` from every Form XObject at any nesting depth.

    Args:
        pdf: Opened pikepdf PDF object (modified in place).
        log: Logger to report to.

    Returns:
        Number of ``/SMask`` entries removed.
    """
    log = log or logger
    removed = 0
    visited: set[tuple[int, int]] = set()

    for page_num, resources in iter_page_resources(pdf):
        try:
            for name, form, _depth in walk_form_xobjects(resources, visited):
                if Name.SMask in form:
                    del form[Name.SMask]
                    removed += 1
                    log.debug("Removed /SMask from Form XObject %s", name)
        except Exception as e:
            log.debug("Error removing soft masks on page %d: %s", page_num, e)

    if removed > 0:
        log.info("%d soft mask(s) removed from Form XObjects", removed)
    return removed
