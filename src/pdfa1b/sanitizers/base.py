# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Shared traversal helpers for the PDF/A-1b sanitizers.

Resource graphs are walked iteratively with an explicit stack. Every
indirect object is identified by its ``objgen`` and visited at most once
per ``visited`` set, so shared subtrees and self-referencing Form
XObjects terminate, and deep nesting cannot exhaust the Python stack.
"""

import logging
from collections.abc import Iterator

from pikepdf import Dictionary, Name, Pdf, Stream

from ..utils import get_inherited_attribute, object_key
from ..utils import resolve_indirect as _resolve_indirect

logger = logging.getLogger(__name__)


def get_resources(obj) -> Dictionary | None:
    """Return the resolved ``/Resources`` dictionary of a page or form."""
    try:
        resources = _resolve_indirect(obj.get(Name.Resources))
    except (AttributeError, TypeError, ValueError):
        return None
    if not isinstance(resources, Dictionary):
        return None
    return resources


def iter_page_resources(pdf: Pdf) -> Iterator[tuple[int, Dictionary]]:
    """Yield ``(page_number, resources)`` for every page with resources.

    Resources inherited from the page tree are honoured.
    """
    for page_num, page in enumerate(pdf.pages, start=1):
        resources = _resolve_indirect(
            get_inherited_attribute(page.obj, "/Resources")
        )
        if isinstance(resources, Dictionary):
            yield page_num, resources


def iter_xobjects(resources: Dictionary) -> Iterator[tuple[str, Stream]]:
    """Yield ``(name, xobject)`` for each stream in ``/Resources/XObject``.

    Null, missing and non-stream entries are skipped.
    """
    try:
        xobjects = _resolve_indirect(resources.get(Name.XObject))
    except (AttributeError, TypeError, ValueError):
        return
    if not isinstance(xobjects, Dictionary):
        return

    for name in list(xobjects.keys()):
        try:
            xobj = _resolve_indirect(xobjects[name])
        except (AttributeError, KeyError, TypeError, ValueError):
            continue
        if isinstance(xobj, Stream):
            yield str(name), xobj


def is_form_xobject(xobj: Stream) -> bool:
    """Return True if *xobj* has ``/Subtype /Form``."""
    try:
        subtype = _resolve_indirect(xobj.get(Name.Subtype))
    except (AttributeError, TypeError, ValueError):
        return False
    return subtype is not None and str(subtype) == "/Form"


def iter_ext_gstates(resources: Dictionary) -> Iterator[tuple[str, Dictionary]]:
    """Yield ``(name, gs_dict)`` for each entry in ``/Resources/ExtGState``."""
    try:
        extgstates = _resolve_indirect(resources.get(Name.ExtGState))
    except (AttributeError, TypeError, ValueError):
        return
    if not isinstance(extgstates, Dictionary):
        return

    for name in list(extgstates.keys()):
        try:
            gs = _resolve_indirect(extgstates[name])
        except (AttributeError, KeyError, TypeError, ValueError):
            continue
        if isinstance(gs, Dictionary):
            yield str(name), gs


def walk_form_xobjects(
    resources: Dictionary,
    visited: set[tuple[int, int]],
    max_depth: int | None = None,
) -> Iterator[tuple[str, Stream, int]]:
    """Depth-first walk over the Form XObjects reachable from *resources*.

    Yields ``(name, form, depth)`` where depth 1 means the form is listed
    directly in *resources*. Each indirect form is yielded at most once
    for a given *visited* set.

    Args:
        resources: A resolved Resources dictionary.
        visited: ``(objnum, gen)`` tuples already seen; updated in place.
        max_depth: If given, forms deeper than this are not visited.
    """
    # Stack of (name, xobject, depth); reversed so siblings keep their order
    stack = [(name, xobj, 1) for name, xobj in iter_xobjects(resources)]
    stack.reverse()

    while stack:
        name, xobj, depth = stack.pop()

        if not is_form_xobject(xobj):
            continue

        objgen = object_key(xobj)
        if objgen is not None:
            if objgen in visited:
                continue
            visited.add(objgen)

        yield name, xobj, depth

        if max_depth is not None and depth >= max_depth:
            continue

        nested = get_resources(xobj)
        if nested is None:
            continue
        children = [(n, x, depth + 1) for n, x in iter_xobjects(nested)]
        children.reverse()
        stack.extend(children)
