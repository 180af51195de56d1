# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""PDF/A-1b sanitization functions.

This module provides the transparency fixups that coerce a merged
document into a PDF/A-1b legal state. The fixups are lossy by intent:
non-compliant constructs are normalised, never reported as errors.
"""

import logging

from pikepdf import Pdf

from ..utils import Log
from .base import (
    get_resources,
    is_form_xobject,
    iter_ext_gstates,
    iter_page_resources,
    iter_xobjects,
    walk_form_xobjects,
)
from .extgstate import reset_alpha_constants, reset_extgstate_alpha
from .soft_masks import strip_soft_masks
from .transparency_groups import strip_transparency_groups

logger = logging.getLogger(__name__)

__all__ = [
    "get_resources",
    "is_form_xobject",
    "iter_ext_gstates",
    "iter_page_resources",
    "iter_xobjects",
    "reset_alpha_constants",
    "reset_extgstate_alpha",
    "sanitize_for_pdfa1b",
    "strip_soft_masks",
    "strip_transparency_groups",
    "walk_form_xobjects",
]


def sanitize_for_pdfa1b(
    pdf: Pdf,
    *,
    deep_alpha_reset: bool = False,
    log: Log | None = None,
) -> dict[str, int]:
    """Applies the PDF/A-1b transparency fixups to a document.

    Order of operations:

    1. ExtGState ``/CA`` and ``/ca`` forced to 1.0 (page resources and
       their direct Form XObjects, or all forms with *deep_alpha_reset*)
    2. ``/SMask`` removed from Form XObjects at any depth
    3. ``/S /Transparency`` removed from Form XObject ``/Group``
       dictionaries at any depth

    Args:
        pdf: Opened pikepdf PDF object (modified in place).
        deep_alpha_reset: Reset ExtGStates in nested forms at any depth.
        log: Logger to report to.

    Returns:
        Dictionary with statistics about performed fixups:
        - extgstate_alpha_reset: ExtGStates whose alpha values changed
        - soft_masks_removed: /SMask entries removed
        - transparency_groups_fixed: /S /Transparency markers removed
    """
    log = log or logger
    log.debug("Applying PDF/A-1b transparency fixups to %d page(s)", len(pdf.pages))

    result = {
        "extgstate_alpha_reset": reset_extgstate_alpha(
            pdf, deep=deep_alpha_reset, log=log
        ),
        "soft_masks_removed": strip_soft_masks(pdf, log=log),
        "transparency_groups_fixed": strip_transparency_groups(pdf, log=log),
    }

    log.debug("Sanitization result: %s", result)
    return result
