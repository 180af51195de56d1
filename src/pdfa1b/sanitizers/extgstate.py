# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Constant alpha normalisation for PDF/A-1b.

ISO 19005-1, 6.4 requires ``/CA`` and ``/ca`` in an ExtGState to be 1.0.
Every ExtGState is forced to full opacity instead of rejecting the
document; the page may look different afterwards.

The reset covers the page's own ExtGStates and those of the Form
XObjects listed directly in the page resources. Forms nested deeper are
only reached with ``deep=True``.
"""

import logging
from decimal import Decimal

from pikepdf import Dictionary, Name, Pdf

from ..utils import Log, object_key
from ..utils import resolve_indirect as _resolve_indirect
from .base import (
    get_resources,
    iter_ext_gstates,
    iter_page_resources,
    walk_form_xobjects,
)

logger = logging.getLogger(__name__)

_OPAQUE = Decimal("1.0")
_ALPHA_KEYS = (Name.CA, Name.ca)


def _is_opaque(value) -> bool:
    try:
        return float(_resolve_indirect(value)) == 1.0
    except (TypeError, ValueError):
        return False


def reset_alpha_constants(gs_dict: Dictionary) -> bool:
    """Set stroking and non-stroking alpha of an ExtGState to 1.0.

    Args:
        gs_dict: A resolved ExtGState dictionary (modified in place).

    Returns:
        True if either value was missing or different from 1.0.
    """
    changed = False
    for key in _ALPHA_KEYS:
        if not _is_opaque(gs_dict.get(key)):
            changed = True
        gs_dict[key] = _OPAQUE
    return changed


def _reset_resources(
    resources: Dictionary, seen_gs: set[tuple[int, int]], log: Log
) -> int:
    """Reset every ExtGState in a Resources dictionary.

    Returns:
        Number of ExtGStates whose alpha values changed.
    """
    changed = 0
    for gs_name, gs in iter_ext_gstates(resources):
        objgen = object_key(gs)
        if objgen is not None:
            if objgen in seen_gs:
                continue
            seen_gs.add(objgen)
        if reset_alpha_constants(gs):
            changed += 1
            log.debug("Reset alpha constants of ExtGState %s", gs_name)
    return changed


def reset_extgstate_alpha(
    pdf: Pdf, *, deep: bool = False, log: Log | None = None
) -> int:
    """Force ``/CA`` and ``/ca`` to 1.0 in page-level ExtGStates.

    Args:
        pdf: Opened pikepdf PDF object (modified in place).
        deep: If False, only Form XObjects listed directly in a page's
            resources have their ExtGStates reset. If True, forms at
            any nesting depth are included.
        log: Logger to report to.

    Returns:
        Number of ExtGState dictionaries whose alpha values changed.
    """
    log = log or logger
    changed = 0
    seen_gs: set[tuple[int, int]] = set()
    visited_forms: set[tuple[int, int]] = set()
    max_depth = None if deep else 1

    for page_num, resources in iter_page_resources(pdf):
        try:
            changed += _reset_resources(resources, seen_gs, log)

            for _name, form, _depth in walk_form_xobjects(
                resources, visited_forms, max_depth=max_depth
            ):
                form_resources = get_resources(form)
                if form_resources is not None:
                    changed += _reset_resources(form_resources, seen_gs, log)
        except Exception as e:
            log.debug(
                "Error resetting ExtGState alpha on page %d: %s", page_num, e
            )

    if changed > 0:
        log.info("Alpha constants reset to 1.0 in %d ExtGState(s)", changed)
    return changed
