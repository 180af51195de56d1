# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Core logic for merging inputs into one PDF/A-1b document."""

# Standard Library
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

# Third Party
import pikepdf

# Local
from .exceptions import ConversionError
from .merge import MergeResult, merge_files
from .metadata import apply_metadata
from .output_intent import add_output_intent
from .sanitizers import sanitize_for_pdfa1b
from .utils import DEFAULT_PAGE_SIZE, PDFA1_VERSION, Log

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "PDF/A-1b Document"
DEFAULT_CREATOR_TOOL = "pdfa1b"
DEFAULT_PRODUCER = "pdfa1b"

# Fixup result key -> warning message mappings for convert_to_pdfa1b().
_FIX_WARNINGS: list[tuple[str, str]] = [
    ("extgstate_alpha_reset", "ExtGState alpha value(s) reset to 1.0"),
    ("soft_masks_removed", "soft mask(s) removed from Form XObjects"),
    ("transparency_groups_fixed", "transparency group(s) removed"),
]


class _OutputLogAdapter(logging.LoggerAdapter):
    """Prefixes every record with the output file name."""

    def process(self, msg, kwargs):
        return f"[{self.extra['output']}] {msg}", kwargs


@dataclass
class ConversionResult:
    """Result of a PDF/A-1b conversion.

    Attributes:
        success: True if the conversion was successful.
        input_paths: Input files in the order they were given.
        output_path: Path to the output PDF/A-1b.
        pages: Number of pages in the output.
        skipped: Inputs skipped because of an unsupported file type.
        warnings: List of warnings during conversion.
        fixes: Raw fixup counters.
        processing_time: Processing time in seconds.
    """

    success: bool
    input_paths: list[Path]
    output_path: Path
    pages: int = 0
    skipped: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    fixes: dict[str, int] = field(default_factory=dict)
    processing_time: float = 0.0


def _truncate_trailing_data(output_path: Path, log: Log = logger) -> bool:
    """Remove data after the last ``%%EOF`` marker (ISO 19005-1, 6.1.3).

    Only a single end-of-line sequence may follow the final ``%%EOF``.

    Args:
        output_path: Path to the saved PDF file.
        log: Logger to report to.

    Returns:
        ``True`` if the file was modified, ``False`` otherwise.
    """
    try:
        data = output_path.read_bytes()
    except OSError as e:
        log.warning("Could not read file for %%%%EOF check: %s", e)
        return False

    eof_marker = b"%%EOF"
    last_eof = data.rfind(eof_marker)
    if last_eof == -1:
        log.warning("No %%%%EOF marker found in output file")
        return False

    cut = last_eof + len(eof_marker)
    if data[cut : cut + 2] == b"\r\n":
        cut += 2
    elif data[cut : cut + 1] in (b"\n", b"\r"):
        cut += 1

    if cut >= len(data):
        return False

    log.debug("Truncating %d byte(s) after %%%%EOF", len(data) - cut)
    try:
        output_path.write_bytes(data[:cut])
    except OSError as e:
        log.warning("Could not truncate trailing data: %s", e)
        return False
    return True


def _remove_partial_output(output_path: Path, log: Log) -> None:
    try:
        output_path.unlink(missing_ok=True)
        log.debug("Partial output removed: %s", output_path)
    except OSError as e:
        log.warning("Could not remove partial output %s: %s", output_path, e)


def convert_to_pdfa1b(
    input_paths: Iterable[Path | str],
    output_path: Path | str,
    *,
    title: str = DEFAULT_TITLE,
    creator_tool: str = DEFAULT_CREATOR_TOOL,
    producer: str = DEFAULT_PRODUCER,
    page_size: str = DEFAULT_PAGE_SIZE,
    icc_profile: Path | str | None = None,
    deep_alpha_reset: bool = False,
    force_overwrite: bool = True,
    show_progress: bool = False,
    log: Log | None = None,
) -> ConversionResult:
    """Merges images and PDFs into one PDF/A-1b file.

    Stages run strictly in sequence: merge, transparency fixups, XMP
    metadata, output intent, save. Any failure aborts the whole batch and
    no output file is left behind.

    Args:
        input_paths: Ordered JPEG, PNG and PDF files.
        output_path: Path for the output PDF/A-1b.
        title: Document title (DocInfo /Title and dc:title).
        creator_tool: Creating application (xmp:CreatorTool).
        producer: PDF producer (pdf:Producer).
        page_size: Page size used for image pages.
        icc_profile: Optional RGB ICC profile for the output intent.
        deep_alpha_reset: Reset ExtGState alpha in forms at any depth.
        force_overwrite: If False, an existing output file is an error.
        show_progress: If True, a tqdm progress bar is shown while merging.
        log: Logger to report to. Defaults to a logger adapter prefixing
            records with the output file name.

    Returns:
        ConversionResult with status and details.

    Raises:
        ConversionError: If conversion fails.
        MetadataError: If a metadata field value is invalid.
    """
    start_time = time.perf_counter()
    inputs = [Path(p) for p in input_paths]
    output_path = Path(output_path)
    if log is None:
        log = _OutputLogAdapter(logger, {"output": output_path.name})

    if not inputs:
        raise ConversionError("No input files given")

    for input_path in inputs:
        if input_path.resolve() == output_path.resolve():
            raise ConversionError(f"Input and output paths must differ: {input_path}")

    if output_path.exists() and not force_overwrite:
        raise ConversionError(f"Output file already exists: {output_path}")

    log.info("Starting conversion of %d input(s) -> %s", len(inputs), output_path)

    merged: MergeResult | None = None
    save_started = False
    warnings: list[str] = []

    try:
        # 1. Merge
        merged = merge_files(
            inputs, page_size=page_size, log=log, show_progress=show_progress
        )
        pdf = merged.pdf
        skipped = list(merged.skipped)
        for path in skipped:
            warnings.append(f"Unsupported file type skipped: {path.name}")

        page_count = len(pdf.pages)
        if page_count == 0:
            if len(skipped) == len(inputs):
                names = ", ".join(p.name for p in skipped)
                raise ConversionError(
                    f"No pages to convert: every input is an unsupported "
                    f"file type ({names})"
                )
            raise ConversionError("No pages to convert: the inputs contain no pages")

        # 2. Transparency fixups
        log.debug("Applying PDF/A-1b transparency fixups")
        fixes = sanitize_for_pdfa1b(pdf, deep_alpha_reset=deep_alpha_reset, log=log)
        for key, message in _FIX_WARNINGS:
            count = fixes.get(key, 0)
            if count > 0:
                warnings.append(f"{count} {message}")

        # 3. Metadata
        xmp_size = apply_metadata(
            pdf,
            title=title,
            creator_tool=creator_tool,
            producer=producer,
            now=datetime.now(UTC),
            log=log,
        )
        if xmp_size == 0:
            warnings.append("XMP metadata could not be serialized")

        # 4. Output intent
        add_output_intent(pdf, icc_profile, log=log)

        # 5. Save. PDF/A-1 forbids object streams and cross-reference
        # streams (ISO 19005-1, 6.1.4).
        output_path.parent.mkdir(parents=True, exist_ok=True)
        log.debug("Saving PDF/A-1b: %s", output_path)
        save_started = True
        pdf.save(
            output_path,
            linearize=False,
            force_version=PDFA1_VERSION,
            object_stream_mode=pikepdf.ObjectStreamMode.disable,
            deterministic_id=True,
        )
        merged.close()
        merged = None

        # 6. Post-save file structure hardening
        _truncate_trailing_data(output_path, log)

        processing_time = time.perf_counter() - start_time
        log.info(
            "Conversion successful: %d page(s) (%.2f seconds)",
            page_count,
            processing_time,
        )

        return ConversionResult(
            success=True,
            input_paths=inputs,
            output_path=output_path,
            pages=page_count,
            skipped=skipped,
            warnings=warnings,
            fixes=fixes,
            processing_time=processing_time,
        )

    except ConversionError:
        if save_started:
            _remove_partial_output(output_path, log)
        raise

    except (pikepdf.PdfError, OSError) as e:
        if save_started:
            _remove_partial_output(output_path, log)
        error_msg = f"PDF processing error: {e}"
        log.error(error_msg)
        raise ConversionError(error_msg) from e

    finally:
        if merged is not None:
            merged.close()
