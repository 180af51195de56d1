# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Merge stage: combine raster images and PDF files into one document."""

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import pikepdf
from pikepdf import Array, Dictionary, Name, Pdf
from tqdm import tqdm

from .exceptions import ConversionError
from .images import embed_image
from .utils import (
    DEFAULT_PAGE_SIZE,
    Log,
    get_inherited_attribute,
    get_page_size,
)

logger = logging.getLogger(__name__)

# Uniform scale applied on top of "fit to page" (10% margin)
IMAGE_MARGIN_SCALE = 0.9

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png"})
PDF_EXTENSIONS = frozenset({".pdf"})

_IMAGE_RESOURCE_NAME = Name("/Im0")

# ISO 32000-1, Table 30
_INHERITABLE_PAGE_KEYS = ("/Resources", "/MediaBox", "/CropBox", "/Rotate")


class InputKind(enum.Enum):
    """How an input file is merged."""

    IMAGE = "image"
    PDF = "pdf"


@dataclass
class ImagePlacement:
    """Position and size of an image drawn on a page, in points."""

    x: float
    y: float
    width: float
    height: float
    scale: float


@dataclass
class MergeResult:
    """Result of merging input files.

    The merged document references stream data of the source PDFs, so
    both are closed together via close() or the context manager.

    Attributes:
        pdf: The merged document.
        sources: Source PDFs whose pages were imported.
        skipped: Inputs skipped because of an unsupported file type.
        image_pages: Number of pages created from images.
        imported_pages: Number of pages imported from PDF inputs.
    """

    pdf: Pdf
    sources: list[Pdf] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    image_pages: int = 0
    imported_pages: int = 0

    def close(self) -> None:
        """Close the merged document and all source documents."""
        self.pdf.close()
        for source in self.sources:
            source.close()
        self.sources.clear()

    def __enter__(self) -> "MergeResult":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def classify_input(path: Path) -> InputKind | None:
    """Classifies an input file by its extension.

    Args:
        path: Input file path.

    Returns:
        The InputKind, or None if the file type is not supported.
    """
    suffix = path.suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return InputKind.IMAGE
    if suffix in PDF_EXTENSIONS:
        return InputKind.PDF
    return None


def compute_image_placement(
    page_width: float,
    page_height: float,
    image_width: float,
    image_height: float,
    margin_scale: float = IMAGE_MARGIN_SCALE,
) -> ImagePlacement:
    """Scales an image uniformly to fit the page and centers it.

    Args:
        page_width: Page width in points.
        page_height: Page height in points.
        image_width: Image width in pixels.
        image_height: Image height in pixels.
        margin_scale: Factor applied after fitting (0.9 leaves a 10% margin).

    Returns:
        ImagePlacement with the lower-left corner and drawn size.

    Raises:
        ConversionError: If any dimension is not positive.
    """
    if min(page_width, page_height, image_width, image_height) <= 0:
        raise ConversionError(
            f"Invalid dimensions: page {page_width}x{page_height}, "
            f"image {image_width}x{image_height}"
        )

    scale = min(page_width / image_width, page_height / image_height) * margin_scale
    scaled_width = image_width * scale
    scaled_height = image_height * scale
    return ImagePlacement(
        x=(page_width - scaled_width) / 2,
        y=(page_height - scaled_height) / 2,
        width=scaled_width,
        height=scaled_height,
        scale=scale,
    )


def _draw_image_content(placement: ImagePlacement) -> bytes:
    """Build the content stream that paints ``/Im0`` at *placement*."""
    return (
        f"q {placement.width:.4f} 0 0 {placement.height:.4f} "
        f"{placement.x:.4f} {placement.y:.4f} cm "
        f"{_IMAGE_RESOURCE_NAME} Do Q\n"
    ).encode("ascii")


def add_image_page(
    pdf: Pdf,
    path: Path,
    page_size: str = DEFAULT_PAGE_SIZE,
) -> ImagePlacement:
    """Appends a page showing one image, scaled to fit and centered.

    Args:
        pdf: Target document (modified in place).
        path: JPEG or PNG file.
        page_size: Named page size, see ``utils.PAGE_SIZES``.

    Returns:
        The placement used to draw the image.

    Raises:
        ConversionError: If the image cannot be read.
    """
    page_width, page_height = get_page_size(page_size)
    image = embed_image(pdf, path)
    placement = compute_image_placement(
        page_width, page_height, image.width, image.height
    )

    contents = pdf.make_stream(_draw_image_content(placement))
    page_dict = Dictionary(
        Type=Name.Page,
        MediaBox=Array([0, 0, page_width, page_height]),
        Resources=Dictionary(
            XObject=Dictionary({str(_IMAGE_RESOURCE_NAME): image.xobject}),
        ),
        Contents=contents,
    )
    pdf.pages.append(pikepdf.Page(page_dict))

    logger.debug(
        "Image page added for %s: scale %.4f, %.1fx%.1f at (%.1f, %.1f)",
        path.name,
        placement.scale,
        placement.width,
        placement.height,
        placement.x,
        placement.y,
    )
    return placement


def _push_inherited_attributes(page_dict: Dictionary) -> None:
    """Copy inherited page attributes onto the page dictionary itself."""
    for key in _INHERITABLE_PAGE_KEYS:
        if key in page_dict:
            continue
        value = get_inherited_attribute(page_dict, key)
        if value is not None:
            page_dict[key] = value


def import_pdf_pages(pdf: Pdf, path: Path) -> Pdf:
    """Appends all pages of a PDF file, keeping their geometry.

    The effective MediaBox, CropBox, Rotate and Resources of each source
    page (including values inherited from the source page tree) are
    written onto the imported page, since the source page tree is not
    copied.

    pikepdf copies foreign stream data lazily, so the returned source
    document must stay open until *pdf* has been saved.

    Args:
        pdf: Target document (modified in place).
        path: PDF file to import.

    Returns:
        The opened source document. The caller must close it.

    Raises:
        ConversionError: If the file cannot be opened.
    """
    try:
        source = pikepdf.open(path)
    except pikepdf.PasswordError as e:
        raise ConversionError(f"PDF is password protected: {path}") from e
    except pikepdf.PdfError as e:
        raise ConversionError(f"Could not read PDF {path}: {e}") from e
    except OSError as e:
        raise ConversionError(f"Could not open PDF {path}: {e}") from e

    try:
        for source_page in source.pages:
            _push_inherited_attributes(source_page.obj)
            pdf.pages.append(source_page)
    except pikepdf.PdfError as e:
        source.close()
        raise ConversionError(f"Could not import pages from {path}: {e}") from e
    except Exception:
        source.close()
        raise

    logger.debug("Imported %d page(s) from %s", len(source.pages), path.name)
    return source


def merge_files(
    input_paths: Iterable[Path],
    *,
    page_size: str = DEFAULT_PAGE_SIZE,
    log: Log | None = None,
    show_progress: bool = False,
) -> MergeResult:
    """Merges images and PDF files into one new document.

    Inputs are processed in order: each image becomes one page, each PDF
    contributes all of its pages. Files with an unsupported extension are
    skipped with a warning. Any other failure aborts the whole merge and
    closes everything opened so far.

    Args:
        input_paths: Ordered input files.
        page_size: Page size for image pages.
        log: Logger for progress and warnings.
        show_progress: If True, a tqdm progress bar is shown.

    Returns:
        MergeResult owning the merged document and its source PDFs.

    Raises:
        ConversionError: If any supported input cannot be read.
    """
    log = log or logger
    paths = [Path(p) for p in input_paths]
    get_page_size(page_size)

    result = MergeResult(pdf=Pdf.new())

    progress_bar = None
    if show_progress:
        progress_bar = tqdm(total=len(paths), desc="Merging", unit="file", ncols=80)

    try:
        for path in paths:
            kind = classify_input(path)
            if kind is InputKind.IMAGE:
                add_image_page(result.pdf, path, page_size)
                result.image_pages += 1
            elif kind is InputKind.PDF:
                source = import_pdf_pages(result.pdf, path)
                result.sources.append(source)
                result.imported_pages += len(source.pages)
            else:
                log.warning("Unsupported file type, skipping: %s", path.name)
                result.skipped.append(path)

            if progress_bar is not None:
                progress_bar.update(1)
                progress_bar.set_postfix_str(path.name)
    except Exception:
        result.close()
        raise
    finally:
        if progress_bar is not None:
            progress_bar.close()

    log.info(
        "Merged %d input(s) into %d page(s) (%d from images, %d imported, "
        "%d skipped)",
        len(paths) - len(result.skipped),
        len(result.pdf.pages),
        result.image_pages,
        result.imported_pages,
        len(result.skipped),
    )
    return result
