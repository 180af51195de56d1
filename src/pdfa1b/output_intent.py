# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""sRGB OutputIntent for PDF/A-1b conversion."""

import functools
import logging
from pathlib import Path

from PIL import ImageCms
from pikepdf import Array, Dictionary, Name, Pdf, Stream

from .exceptions import ConversionError
from .utils import Log

logger = logging.getLogger(__name__)

SRGB_OUTPUT_CONDITION = "sRGB IEC61966-2.1"
ICC_REGISTRY = "http://www.color.org"


def _validate_icc_profile(profile_data: bytes) -> bool:
    """
    Validate ICC profile structure.

    Args:
        profile_data: Raw ICC profile bytes.

    Returns:
        True if the header is well-formed and describes an RGB profile.
    """
    if len(profile_data) < 128:
        return False

    # 'acsp' signature at bytes 36-39
    if profile_data[36:40] != b"acsp":
        return False

    declared_size = int.from_bytes(profile_data[0:4], byteorder="big")
    if declared_size != len(profile_data):
        return False

    if profile_data[8] not in (2, 4):
        return False

    # Named Color profiles cannot be output intents
    if profile_data[12:16] not in {b"mntr", b"prtr", b"scnr", b"spac"}:
        return False

    # Data colour space (bytes 16-19) must match /N 3
    return profile_data[16:20] == b"RGB "


@functools.cache
def get_srgb_profile() -> bytes:
    """
    Return the built-in sRGB ICC profile.

    The profile is generated by LittleCMS through Pillow's ImageCms and
    cached so it is built only once.

    Raises:
        ConversionError: If the profile cannot be created or is invalid.
    """
    try:
        profile = ImageCms.createProfile("sRGB")
        profile_data = ImageCms.ImageCmsProfile(profile).tobytes()
    except (ImageCms.PyCMSError, OSError) as e:
        raise ConversionError(f"Could not create sRGB ICC profile: {e}") from e

    if not _validate_icc_profile(profile_data):
        raise ConversionError("Built-in sRGB ICC profile is invalid")

    logger.debug("sRGB ICC profile created: %d bytes", len(profile_data))
    return profile_data


def load_icc_profile(path: Path | str) -> bytes:
    """
    Read an ICC profile from disk.

    Args:
        path: Path to an RGB ICC profile.

    Returns:
        Raw ICC profile bytes.

    Raises:
        ConversionError: If the file cannot be read or is not a valid RGB
            ICC profile.
    """
    path = Path(path)
    try:
        with path.open("rb") as f:
            profile_data = f.read()
    except OSError as e:
        raise ConversionError(f"Could not read ICC profile {path}: {e}") from e

    if not _validate_icc_profile(profile_data):
        raise ConversionError(f"ICC profile is invalid or not RGB: {path}")

    logger.debug("ICC profile loaded from %s: %d bytes", path, len(profile_data))
    return profile_data


def create_output_intent(pdf: Pdf, profile_data: bytes) -> Dictionary:
    """
    Create a GTS_PDFA1 OutputIntent dictionary for an RGB profile.

    Args:
        pdf: pikepdf Pdf object to create the stream in.
        profile_data: Raw ICC profile bytes.

    Returns:
        OutputIntent Dictionary ready to be added to PDF.

    Raises:
        ConversionError: If profile data is invalid.
    """
    if not _validate_icc_profile(profile_data):
        raise ConversionError("ICC profile is invalid")

    icc_stream = Stream(pdf, profile_data)
    icc_stream.N = 3

    return Dictionary(
        Type=Name.OutputIntent,
        S=Name.GTS_PDFA1,
        Info=SRGB_OUTPUT_CONDITION,
        OutputCondition=SRGB_OUTPUT_CONDITION,
        OutputConditionIdentifier=SRGB_OUTPUT_CONDITION,
        RegistryName=ICC_REGISTRY,
        DestOutputProfile=pdf.make_indirect(icc_stream),
    )


def add_output_intent(
    pdf: Pdf,
    profile_path: Path | str | None = None,
    *,
    log: Log | None = None,
) -> Dictionary:
    """
    Set the document's single sRGB OutputIntent.

    Any existing ``/OutputIntents`` array is replaced.

    Args:
        pdf: pikepdf Pdf object to modify.
        profile_path: Optional ICC profile to embed instead of the
            built-in sRGB profile.
        log: Logger to report to.

    Returns:
        The OutputIntent dictionary that was installed.

    Raises:
        ConversionError: If the profile cannot be loaded.
    """
    log = log or logger

    if profile_path is not None:
        profile_data = load_icc_profile(profile_path)
    else:
        profile_data = get_srgb_profile()

    if Name.OutputIntents in pdf.Root:
        log.info("Replacing existing OutputIntents")

    output_intent = pdf.make_indirect(create_output_intent(pdf, profile_data))
    pdf.Root.OutputIntents = Array([output_intent])

    log.info("OutputIntent added: %s", SRGB_OUTPUT_CONDITION)
    return output_intent
