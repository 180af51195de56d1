# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Custom exceptions for pdfa1b."""


class PDFA1bError(Exception):
    """Base exception for all pdfa1b errors."""


class ConversionError(PDFA1bError):
    """Error during conversion."""


class MetadataError(ConversionError):
    """XMP metadata could not be built from the given field values."""
