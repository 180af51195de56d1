# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Transparency group removal for PDF/A-1b.

ISO 19005-1, 6.4 forbids a ``/Group`` dictionary with ``/S
/Transparency`` on Form XObjects. Only the ``/S`` marker is removed; the
rest of the group dictionary (``/CS``, ``/I``, ``/K``) is left in place.
"""

import logging

from pikepdf import Dictionary, Name, Pdf, Stream

from ..utils import Log
from ..utils import resolve_indirect as _resolve_indirect
from .base import iter_page_resources, walk_form_xobjects

logger = logging.getLogger(__name__)


def _strip_group_marker(form: Stream, name: str, log: Log) -> int:
    """Delete ``/S /Transparency`` from the form's ``/Group``.

    Returns:
        1 if the marker was removed, 0 otherwise.
    """
    try:
        group = _resolve_indirect(form.get(Name.Group))
    except (AttributeError, TypeError, ValueError):
        return 0
    if not isinstance(group, Dictionary):
        return 0

    subtype = _resolve_indirect(group.get(Name.S))
    if subtype is None or str(subtype) != "/Transparency":
        return 0

    del group[Name.S]
    log.debug("Removed transparency group marker from Form XObject %s", name)
    return 1


def strip_transparency_groups(pdf: Pdf, *, log: Log | None = None) -> int:
    """Remove transparency group markers from all reachable Form XObjects.

    Traverses Page → Resources → XObject → Form → Resources → XObject …
    to any depth. Shared and cyclic form graphs are visited once.

    Args:
        pdf: Opened pikepdf PDF object (modified in place).
        log: Logger to report to.

    Returns:
        Number of ``/S /Transparency`` markers removed.
    """
    log = log or logger
    removed = 0
    visited: set[tuple[int, int]] = set()

    for page_num, resources in iter_page_resources(pdf):
        try:
            for name, form, _depth in walk_form_xobjects(resources, visited):
                removed += _strip_group_marker(form, name, log)
        except Exception as e:
            log.debug(
                "Error stripping transparency groups on page %d: %s", page_num, e
            )

    if removed > 0:
        log.info("%d transparency group marker(s) removed", removed)
    return removed
