# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""XMP metadata handling for PDF/A-1b conversion.

Building the XMP tree is strict: an invalid field value raises
MetadataError and aborts the conversion. Serializing the tree is
lenient: a failure is logged and an empty packet is embedded.
"""

import logging
import re
from datetime import UTC, datetime

import pikepdf
from lxml import etree
from lxml.builder import ElementMaker

from .exceptions import ConversionError, MetadataError
from .utils import Log

logger = logging.getLogger(__name__)

# Regex matching control characters forbidden in XML 1.0
# (U+0000-U+0008, U+000B-U+000C, U+000E-U+001F)
_XML_ILLEGAL_CTRL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")

# XML namespaces for XMP metadata
NAMESPACES = {
    "x": "adobe:ns:meta/",
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "dc": "http://purl.org/dc/elements/1.1/",
    "xmp": "http://ns.adobe.com/xap/1.0/",
    "pdf": "http://ns.adobe.com/pdf/1.3/",
    "pdfaid": "http://www.aiim.org/pdfa/ns/id/",
}

XMP_HEADER = b'<?xpacket begin="\xef\xbb\xbf" id="W5M0MpCehiHzreSzNTczkc9d"?>\n'
XMP_TRAILER = b'\n<?xpacket end="w"?>'

_XMP_PADDING_SIZE = 2048

# Conformance levels defined per PDF/A part (ISO 19005-1/2/3)
_VALID_CONFORMANCE = {
    1: frozenset({"A", "B"}),
    2: frozenset({"A", "B", "U"}),
    3: frozenset({"A", "B", "U"}),
}

# Keys PDF/A allows in the document information dictionary
_DOCINFO_KEYS = frozenset(
    {
        "/Title",
        "/Author",
        "/Subject",
        "/Keywords",
        "/Creator",
        "/Producer",
        "/CreationDate",
        "/ModDate",
        "/Trapped",
    }
)


def _require_text(field: str, value: str) -> str:
    """Validate a simple text property and strip illegal XML characters."""
    if not isinstance(value, str):
        raise MetadataError(f"XMP field {field} must be a string, got {value!r}")
    cleaned = _XML_ILLEGAL_CTRL_RE.sub("", value).strip()
    if not cleaned:
        raise MetadataError(f"XMP field {field} must not be empty")
    return cleaned


def _format_iso_date(dt: datetime) -> str:
    """
    Format datetime to ISO 8601 for XMP.

    Args:
        dt: Timezone-aware datetime.

    Returns:
        ISO 8601 string in UTC, e.g. ``2024-05-01T12:00:00+00:00``.
    """
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S+00:00")


def _format_pdf_date(dt: datetime) -> str:
    """
    Format datetime to PDF date string.

    Produces format D:YYYYMMDDHHmmSS+00'00' in UTC.

    Args:
        dt: Timezone-aware datetime.

    Returns:
        PDF date string.
    """
    return dt.astimezone(UTC).strftime("D:%Y%m%d%H%M%S+00'00'")


def create_xmp_metadata(
    title: str,
    creator_tool: str,
    producer: str,
    *,
    part: int = 1,
    conformance: str = "B",
    now: datetime | None = None,
) -> etree._Element:
    """
    Create the XMP metadata tree for a PDF/A document.

    The packet carries four schema blocks, each in its own
    ``rdf:Description``: PDF/A identification, Dublin Core, XMP Basic
    and Adobe PDF.

    Args:
        title: Document title (dc:title).
        creator_tool: Creating application (xmp:CreatorTool).
        producer: PDF producer (pdf:Producer).
        part: PDF/A part number.
        conformance: PDF/A conformance level ('A' or 'B' for part 1).
        now: Creation timestamp. If None, datetime.now(UTC) is used.

    Returns:
        The ``x:xmpmeta`` root element.

    Raises:
        MetadataError: If any field value is invalid.
    """
    if isinstance(part, bool) or not isinstance(part, int):
        raise MetadataError(f"Invalid PDF/A part: {part!r}")
    if part not in _VALID_CONFORMANCE:
        raise MetadataError(f"Invalid PDF/A part: {part}")
    if not isinstance(conformance, str):
        raise MetadataError(f"Invalid PDF/A conformance: {conformance!r}")
    conformance = conformance.upper()
    if conformance not in _VALID_CONFORMANCE[part]:
        raise MetadataError(
            f"Invalid PDF/A conformance '{conformance}' for part {part}. "
            f"Allowed: {', '.join(sorted(_VALID_CONFORMANCE[part]))}"
        )

    if now is None:
        now = datetime.now(UTC)
    elif now.tzinfo is None or now.utcoffset() is None:
        raise MetadataError("XMP dates must be timezone-aware")

    title = _require_text("dc:title", title)
    creator_tool = _require_text("xmp:CreatorTool", creator_tool)
    producer = _require_text("pdf:Producer", producer)
    timestamp = _format_iso_date(now)

    ns_rdf = NAMESPACES["rdf"]
    rdf = ElementMaker(namespace=ns_rdf, nsmap={"rdf": ns_rdf})

    def schema_block(prefix: str) -> etree._Element:
        uri = NAMESPACES[prefix]
        description = etree.Element(
            f"{{{ns_rdf}}}Description", nsmap={"rdf": ns_rdf, prefix: uri}
        )
        description.set(f"{{{ns_rdf}}}about", "")
        return description

    def add_property(parent: etree._Element, prefix: str, name: str, text: str):
        elem = etree.SubElement(parent, f"{{{NAMESPACES[prefix]}}}{name}")
        elem.text = text
        return elem

    # PDF/A identification
    pdfaid = schema_block("pdfaid")
    add_property(pdfaid, "pdfaid", "part", str(part))
    add_property(pdfaid, "pdfaid", "conformance", conformance)

    # Dublin Core: dc:title is a language alternative
    dc = schema_block("dc")
    add_property(dc, "dc", "format", "application/pdf")
    title_elem = etree.SubElement(dc, f"{{{NAMESPACES['dc']}}}title")
    title_li = etree.SubElement(
        etree.SubElement(title_elem, f"{{{ns_rdf}}}Alt"), f"{{{ns_rdf}}}li"
    )
    title_li.set("{http://www.w3.org/XML/1998/namespace}lang", "x-default")
    title_li.text = title

    # XMP Basic
    xmp = schema_block("xmp")
    add_property(xmp, "xmp", "CreatorTool", creator_tool)
    add_property(xmp, "xmp", "CreateDate", timestamp)
    add_property(xmp, "xmp", "ModifyDate", timestamp)
    add_property(xmp, "xmp", "MetadataDate", timestamp)

    # Adobe PDF
    pdf_schema = schema_block("pdf")
    add_property(pdf_schema, "pdf", "Producer", producer)

    rdf_root = rdf("RDF", pdfaid, dc, xmp, pdf_schema)

    xmpmeta = etree.Element(
        f"{{{NAMESPACES['x']}}}xmpmeta",
        nsmap={"x": NAMESPACES["x"]},
    )
    xmpmeta.append(rdf_root)

    logger.debug("XMP metadata tree created for PDF/A-%d%s", part, conformance)
    return xmpmeta


def serialize_xmp(tree: etree._Element, *, log: Log | None = None) -> bytes:
    """
    Serialize an XMP tree to a padded packet.

    Serialization errors are logged and an empty byte string is returned;
    the caller embeds whatever was produced.

    Args:
        tree: The ``x:xmpmeta`` root element.
        log: Logger to report to.

    Returns:
        UTF-8 encoded XMP metadata bytes with packet wrapper, or ``b""``.
    """
    log = log or logger
    try:
        xml_bytes = etree.tostring(
            tree,
            encoding="utf-8",
            xml_declaration=False,
            pretty_print=True,
        )
    except (etree.SerialisationError, TypeError, ValueError) as e:
        log.error("Error serializing XMP metadata: %s", e)
        return b""

    # Padding before the trailer allows in-place editing
    padding_line = b" " * 100 + b"\n"
    num_lines, remainder = divmod(_XMP_PADDING_SIZE, len(padding_line))
    padding_block = padding_line * num_lines + b" " * remainder

    result = XMP_HEADER + xml_bytes + b"\n" + padding_block + XMP_TRAILER
    log.debug("XMP metadata serialized: %d bytes", len(result))
    return result


def embed_xmp_metadata(pdf: pikepdf.Pdf, xmp: bytes) -> None:
    """
    Embed XMP metadata into PDF document.

    Args:
        pdf: pikepdf Pdf object to modify.
        xmp: XMP metadata bytes.

    Raises:
        ConversionError: If embedding fails.
    """
    try:
        metadata_stream = pikepdf.Stream(pdf, xmp)
        metadata_stream.Type = pikepdf.Name.Metadata
        metadata_stream.Subtype = pikepdf.Name.XML
        # PDF/A requires XMP metadata stream to be uncompressed
        if pikepdf.Name.Filter in metadata_stream:
            del metadata_stream[pikepdf.Name.Filter]

        pdf.Root.Metadata = pdf.make_indirect(metadata_stream)

        logger.debug("XMP metadata embedded in PDF")
    except Exception as e:
        raise ConversionError(f"Error embedding XMP metadata: {e}") from e


def sync_docinfo(
    pdf: pikepdf.Pdf,
    title: str,
    creator_tool: str,
    producer: str,
    now: datetime,
) -> None:
    """
    Write the document information dictionary to match the XMP packet.

    PDF/A-1 (ISO 19005-1, 6.7.3) requires every DocInfo entry to have an
    equivalent XMP property with the same value. Non-standard keys are
    removed.

    Args:
        pdf: pikepdf Pdf object to modify.
        title: Value for /Title (dc:title).
        creator_tool: Value for /Creator (xmp:CreatorTool).
        producer: Value for /Producer (pdf:Producer).
        now: Value for /CreationDate and /ModDate.
    """
    docinfo = pdf.docinfo

    for key in list(docinfo.keys()):
        if key not in _DOCINFO_KEYS:
            del docinfo[key]
            logger.debug("Removed non-standard key %s from DocInfo", key)

    # Entries without an XMP counterpart in this packet
    for key in ("/Author", "/Subject", "/Keywords", "/Trapped"):
        if key in docinfo:
            del docinfo[key]

    docinfo[pikepdf.Name.Title] = title
    docinfo[pikepdf.Name.Creator] = creator_tool
    docinfo[pikepdf.Name.Producer] = producer
    pdf_date = _format_pdf_date(now)
    docinfo[pikepdf.Name.CreationDate] = pdf_date
    docinfo[pikepdf.Name.ModDate] = pdf_date


def apply_metadata(
    pdf: pikepdf.Pdf,
    *,
    title: str,
    creator_tool: str,
    producer: str,
    now: datetime | None = None,
    log: Log | None = None,
) -> int:
    """
    Build, serialize and embed PDF/A-1b metadata.

    Args:
        pdf: pikepdf Pdf object to modify.
        title: Document title.
        creator_tool: Creating application.
        producer: PDF producer.
        now: Creation timestamp. If None, datetime.now(UTC) is used.
        log: Logger to report to.

    Returns:
        Size of the embedded XMP packet in bytes (0 if serialization
        failed).

    Raises:
        MetadataError: If a field value is invalid.
        ConversionError: If embedding fails.
    """
    log = log or logger
    if now is None:
        now = datetime.now(UTC)

    log.info("Embedding PDF/A-1b metadata")

    tree = create_xmp_metadata(
        title, creator_tool, producer, part=1, conformance="B", now=now
    )
    xmp = serialize_xmp(tree, log=log)
    if not xmp:
        log.warning("Embedding empty XMP metadata stream")

    embed_xmp_metadata(pdf, xmp)
    sync_docinfo(
        pdf,
        title=_require_text("dc:title", title),
        creator_tool=_require_text("xmp:CreatorTool", creator_tool),
        producer=_require_text("pdf:Producer", producer),
        now=now,
    )
    return len(xmp)
