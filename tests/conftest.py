# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Pytest fixtures for the pdfa1b test suite."""

import logging
from pathlib import Path

import pikepdf
import pytest
from pikepdf import Array, Dictionary, Name, Pdf, Stream
from PIL import Image

# -- Global PDF tracker --

_tracked_pdfs: list[Pdf] = []


@pytest.fixture(autouse=True)
def _auto_close_pdfs():
    """Close all tracked PDF objects after each test."""
    yield
    for pdf in reversed(_tracked_pdfs):
        try:
            pdf.close()
        except Exception:
            pass
    _tracked_pdfs.clear()


@pytest.fixture(autouse=True)
def _reset_pdfa1b_logger():
    """Undo setup_logging() so later tests see records via caplog."""
    yield
    pdfa1b_logger = logging.getLogger("pdfa1b")
    pdfa1b_logger.handlers.clear()
    pdfa1b_logger.setLevel(logging.NOTSET)


def new_pdf(**kwargs) -> Pdf:
    """Create a tracked Pdf (auto-closed after test)."""
    pdf = Pdf.new(**kwargs)
    _tracked_pdfs.append(pdf)
    return pdf


def open_pdf(source, **kwargs) -> Pdf:
    """Open a tracked Pdf (auto-closed after test)."""
    pdf = Pdf.open(source, **kwargs)
    _tracked_pdfs.append(pdf)
    return pdf


# -- Object builders --


def make_form(pdf: Pdf, resources: Dictionary | None = None, **entries) -> Stream:
    """Create an indirect Form XObject.

    Args:
        pdf: An open pikepdf Pdf.
        resources: Optional /Resources dictionary.
        **entries: Extra stream dictionary entries (e.g. Group=..., SMask=...).
    """
    form = pdf.make_stream(b"q Q")
    form[Name.Type] = Name.XObject
    form[Name.Subtype] = Name.Form
    form[Name.BBox] = Array([0, 0, 100, 100])
    if resources is not None:
        form[Name.Resources] = resources
    for key, value in entries.items():
        form[Name("/" + key)] = value
    return form


def make_extgstate(pdf: Pdf, ca: float = 0.5, CA: float = 0.5) -> Dictionary:
    """Create an indirect ExtGState with the given alpha constants."""
    return pdf.make_indirect(Dictionary(Type=Name.ExtGState, ca=ca, CA=CA))


def add_page(pdf: Pdf, resources: Dictionary | None = None) -> pikepdf.Page:
    """Append a Letter page with optional resources."""
    page_dict = Dictionary(Type=Name.Page, MediaBox=Array([0, 0, 612, 792]))
    if resources is not None:
        page_dict[Name.Resources] = resources
    pdf.pages.append(pikepdf.Page(page_dict))
    return pdf.pages[-1]


# -- Fixtures --


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Temporary directory for tests."""
    return tmp_path


@pytest.fixture
def sample_jpeg(tmp_dir: Path) -> Path:
    """RGB JPEG, 200x100 pixels."""
    path = tmp_dir / "photo.jpg"
    Image.new("RGB", (200, 100), (200, 30, 30)).save(path, "JPEG")
    return path


@pytest.fixture
def sample_gray_jpeg(tmp_dir: Path) -> Path:
    """Grayscale JPEG, 50x80 pixels."""
    path = tmp_dir / "gray.jpeg"
    Image.new("L", (50, 80), 128).save(path, "JPEG")
    return path


@pytest.fixture
def sample_png(tmp_dir: Path) -> Path:
    """Opaque RGB PNG, 100x300 pixels."""
    path = tmp_dir / "scan.png"
    Image.new("RGB", (100, 300), (10, 120, 240)).save(path, "PNG")
    return path


@pytest.fixture
def sample_rgba_png(tmp_dir: Path) -> Path:
    """Fully transparent RGBA PNG, 4x4 pixels."""
    path = tmp_dir / "alpha.png"
    Image.new("RGBA", (4, 4), (0, 0, 0, 0)).save(path, "PNG")
    return path


@pytest.fixture
def sample_pdf(tmp_dir: Path) -> Path:
    """Three-page PDF with Letter pages numbered via /PageLabel."""
    path = tmp_dir / "three_pages.pdf"
    pdf = new_pdf()
    for number in range(1, 4):
        page = add_page(pdf)
        page.obj[Name("/PageLabel")] = number
    pdf.save(path)
    return path


@pytest.fixture
def inherited_pdf(tmp_dir: Path) -> Path:
    """Two-page PDF exercising inherited and page-level geometry.

    Page 1 inherits /MediaBox, /CropBox and /Rotate from the page tree.
    Page 2 inherits /MediaBox but sets its own /CropBox and /Rotate.
    """
    path = tmp_dir / "inherited.pdf"
    pdf = new_pdf()
    add_page(pdf)
    add_page(pdf)
    for page in pdf.pages:
        del page.obj[Name.MediaBox]
    pdf.Root.Pages[Name.MediaBox] = Array([0, 0, 300, 400])
    pdf.Root.Pages[Name.CropBox] = Array([5, 5, 295, 395])
    pdf.Root.Pages[Name.Rotate] = 90
    own = pdf.pages[1].obj
    own[Name.CropBox] = Array([10, 10, 200, 300])
    own[Name.Rotate] = 180
    pdf.save(path)
    return path


@pytest.fixture
def transparent_pdf(tmp_dir: Path) -> Path:
    """PDF with a transparency group, soft mask and translucent ExtGState."""
    path = tmp_dir / "transparent.pdf"
    pdf = new_pdf()
    mask = make_form(pdf)
    form = make_form(
        pdf,
        resources=Dictionary(ExtGState=Dictionary(GS1=make_extgstate(pdf))),
        Group=Dictionary(S=Name.Transparency, CS=Name.DeviceRGB),
        SMask=Dictionary(Type=Name.Mask, S=Name.Luminosity, G=mask),
    )
    add_page(
        pdf,
        Dictionary(
            XObject=Dictionary(Fm0=form),
            ExtGState=Dictionary(GS0=make_extgstate(pdf, ca=0.3, CA=0.7)),
        ),
    )
    pdf.save(path)
    return path


@pytest.fixture
def text_file(tmp_dir: Path) -> Path:
    """Plain text file with an unsupported extension."""
    path = tmp_dir / "notes.txt"
    path.write_text("not a document\n")
    return path
