# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""pdfa1b - Merge images and PDF files into one PDF/A-1b document."""

from importlib.metadata import PackageNotFoundError, version

from .converter import ConversionResult, convert_to_pdfa1b
from .exceptions import ConversionError, MetadataError, PDFA1bError
from .merge import MergeResult, merge_files
from .sanitizers import sanitize_for_pdfa1b

try:
    __version__ = version("pdfa1b")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = [
    "__version__",
    "convert_to_pdfa1b",
    "merge_files",
    "sanitize_for_pdfa1b",
    "ConversionResult",
    "MergeResult",
    "PDFA1bError",
    "ConversionError",
    "MetadataError",
]
