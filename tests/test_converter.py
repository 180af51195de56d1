# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Tests for the conversion pipeline."""

import logging
from pathlib import Path
from unittest.mock import patch

import pikepdf
import pytest
from conftest import new_pdf, open_pdf
from lxml import etree
from pikepdf import Name

from pdfa1b.converter import (
    DEFAULT_TITLE,
    ConversionResult,
    _truncate_trailing_data,
    convert_to_pdfa1b,
)
from pdfa1b.exceptions import ConversionError, MetadataError
from pdfa1b.metadata import NAMESPACES


def _xmp_tree(pdf: pikepdf.Pdf) -> etree._Element:
    xmp = pdf.Root.Metadata.read_bytes()
    start = xmp.index(b"<x:xmpmeta")
    end = xmp.index(b"</x:xmpmeta>") + len(b"</x:xmpmeta>")
    return etree.fromstring(xmp[start:end])


class TestConvertToPdfa1b:
    """End-to-end conversion tests."""

    def test_pdf_and_jpeg(
        self, tmp_dir: Path, sample_pdf: Path, sample_jpeg: Path
    ) -> None:
        """A 3-page PDF plus a JPEG gives a 4-page PDF/A-1b file."""
        output = tmp_dir / "out" / "merged.pdf"

        result = convert_to_pdfa1b([sample_pdf, sample_jpeg], output)

        assert isinstance(result, ConversionResult)
        assert result.success is True
        assert result.pages == 4
        assert result.output_path == output
        assert output.read_bytes().startswith(b"%PDF-1.4")

        pdf = open_pdf(output)
        assert len(pdf.pages) == 4
        assert pdf.pdf_version == "1.4"
        assert Name("/Im0") in pdf.pages[3].Resources.XObject

        intents = pdf.Root.OutputIntents
        assert len(intents) == 1
        assert intents[0].S == Name.GTS_PDFA1
        assert str(intents[0].RegistryName) == "http://www.color.org"
        assert str(intents[0].OutputConditionIdentifier) == "sRGB IEC61966-2.1"

        tree = _xmp_tree(pdf)
        assert tree.xpath("string(//pdfaid:part)", namespaces=NAMESPACES) == "1"
        assert (
            tree.xpath("string(//pdfaid:conformance)", namespaces=NAMESPACES) == "B"
        )
        assert str(pdf.docinfo.Title) == DEFAULT_TITLE

    def test_page_geometry_survives(self, tmp_dir: Path, inherited_pdf: Path) -> None:
        """Crop boxes and rotation reach the saved file."""
        output = tmp_dir / "geometry.pdf"
        convert_to_pdfa1b([inherited_pdf], output)

        pdf = open_pdf(output)
        first, second = (p.obj for p in pdf.pages)
        assert [float(v) for v in first.CropBox] == [5, 5, 295, 395]
        assert int(first.Rotate) == 90
        assert [float(v) for v in second.CropBox] == [10, 10, 200, 300]
        assert int(second.Rotate) == 180
        assert [float(v) for v in second.MediaBox] == [0, 0, 300, 400]

    def test_output_ends_at_eof(self, tmp_dir: Path, sample_jpeg: Path) -> None:
        """Nothing but one EOL follows the final %%EOF."""
        output = tmp_dir / "eof.pdf"
        convert_to_pdfa1b([sample_jpeg], output)
        tail = output.read_bytes().rstrip(b"\r\n")
        assert tail.endswith(b"%%EOF")

    def test_no_object_streams(self, tmp_dir: Path, sample_pdf: Path) -> None:
        """PDF/A-1 output has no object or xref streams."""
        output = tmp_dir / "plain.pdf"
        convert_to_pdfa1b([sample_pdf], output)
        data = output.read_bytes()
        assert b"/ObjStm" not in data
        assert b"/XRef" not in data

    def test_fixups_applied(self, tmp_dir: Path, transparent_pdf: Path) -> None:
        """Transparency constructs are removed and counted."""
        output = tmp_dir / "fixed.pdf"
        result = convert_to_pdfa1b([transparent_pdf], output)

        assert result.fixes == {
            "extgstate_alpha_reset": 2,
            "soft_masks_removed": 1,
            "transparency_groups_fixed": 1,
        }
        assert "1 soft mask(s) removed from Form XObjects" in result.warnings

        pdf = open_pdf(output)
        resources = pdf.pages[0].Resources
        form = resources.XObject.Fm0
        assert Name.SMask not in form
        assert Name.S not in form.Group
        assert float(resources.ExtGState.GS0.ca) == 1.0
        assert float(form.Resources.ExtGState.GS1.CA) == 1.0

    def test_unsupported_input_skipped(
        self, tmp_dir: Path, sample_jpeg: Path, text_file: Path, caplog
    ) -> None:
        """A .txt input is skipped with a warning and the rest converts."""
        output = tmp_dir / "skip.pdf"
        with caplog.at_level(logging.WARNING, logger="pdfa1b"):
            result = convert_to_pdfa1b([text_file, sample_jpeg], output)

        assert result.pages == 1
        assert result.skipped == [text_file]
        assert any("notes.txt" in w for w in result.warnings)
        assert any(
            r.levelno == logging.WARNING and "notes.txt" in r.getMessage()
            for r in caplog.records
        )

    def test_log_records_carry_output_name(
        self, tmp_dir: Path, sample_jpeg: Path, caplog
    ) -> None:
        """The default adapter prefixes records with the output name."""
        output = tmp_dir / "named.pdf"
        with caplog.at_level(logging.INFO, logger="pdfa1b"):
            convert_to_pdfa1b([sample_jpeg], output)
        assert any(r.getMessage().startswith("[named.pdf]") for r in caplog.records)

    def test_custom_metadata(self, tmp_dir: Path, sample_png: Path) -> None:
        """Title, creator tool and producer reach DocInfo and XMP."""
        output = tmp_dir / "meta.pdf"
        convert_to_pdfa1b(
            [sample_png],
            output,
            title="Scans 2024",
            creator_tool="Scanner App",
            producer="Lab",
        )
        pdf = open_pdf(output)
        assert str(pdf.docinfo.Title) == "Scans 2024"
        tree = _xmp_tree(pdf)
        assert (
            tree.xpath("string(//xmp:CreatorTool)", namespaces=NAMESPACES)
            == "Scanner App"
        )
        assert tree.xpath("string(//pdf:Producer)", namespaces=NAMESPACES) == "Lab"

    def test_letter_page_size(self, tmp_dir: Path, sample_jpeg: Path) -> None:
        """page_size controls image pages."""
        output = tmp_dir / "letter.pdf"
        convert_to_pdfa1b([sample_jpeg], output, page_size="letter")
        pdf = open_pdf(output)
        assert [float(v) for v in pdf.pages[0].MediaBox] == [0, 0, 612, 792]


class TestConvertErrors:
    """Failure handling of convert_to_pdfa1b."""

    def test_no_inputs(self, tmp_dir: Path) -> None:
        """An empty input list is an error."""
        with pytest.raises(ConversionError, match="No input"):
            convert_to_pdfa1b([], tmp_dir / "out.pdf")

    def test_only_unsupported_inputs(self, tmp_dir: Path, text_file: Path) -> None:
        """No pages at all is an error and no file is written."""
        output = tmp_dir / "empty.pdf"
        with pytest.raises(ConversionError, match="No pages") as excinfo:
            convert_to_pdfa1b([text_file], output)
        assert "unsupported file type (notes.txt)" in str(excinfo.value)
        assert not output.exists()

    def test_pdf_without_pages(self, tmp_dir: Path) -> None:
        """A supported input that yields no pages is reported as such."""
        empty = tmp_dir / "empty_source.pdf"
        new_pdf().save(empty)
        output = tmp_dir / "empty.pdf"
        with pytest.raises(ConversionError, match="contain no pages"):
            convert_to_pdfa1b([empty], output)
        assert not output.exists()

    def test_input_equals_output(self, sample_pdf: Path) -> None:
        """Input and output must differ."""
        with pytest.raises(ConversionError, match="must differ"):
            convert_to_pdfa1b([sample_pdf], sample_pdf)

    def test_existing_output_without_force(
        self, tmp_dir: Path, sample_jpeg: Path
    ) -> None:
        """force_overwrite=False refuses to replace a file."""
        output = tmp_dir / "exists.pdf"
        output.write_bytes(b"old")
        with pytest.raises(ConversionError, match="already exists"):
            convert_to_pdfa1b([sample_jpeg], output, force_overwrite=False)
        assert output.read_bytes() == b"old"

    def test_bad_input_aborts_batch(
        self, tmp_dir: Path, sample_jpeg: Path
    ) -> None:
        """One unreadable supported input aborts everything."""
        broken = tmp_dir / "broken.pdf"
        broken.write_bytes(b"%PDF-garbage")
        output = tmp_dir / "never.pdf"
        with pytest.raises(ConversionError):
            convert_to_pdfa1b([sample_jpeg, broken], output)
        assert not output.exists()

    def test_invalid_metadata(self, tmp_dir: Path, sample_jpeg: Path) -> None:
        """Invalid metadata values abort before saving."""
        output = tmp_dir / "bad_meta.pdf"
        with pytest.raises(MetadataError):
            convert_to_pdfa1b([sample_jpeg], output, producer="")
        assert not output.exists()

    def test_save_failure_removes_partial_output(
        self, tmp_dir: Path, sample_jpeg: Path
    ) -> None:
        """A failing save leaves no output file behind."""
        output = tmp_dir / "partial.pdf"

        def failing_save(self, filename, **kwargs):
            Path(filename).write_bytes(b"%PDF-1.4 partial")
            raise pikepdf.PdfError("disk full")

        with patch.object(pikepdf.Pdf, "save", failing_save):
            with pytest.raises(ConversionError, match="disk full"):
                convert_to_pdfa1b([sample_jpeg], output)
        assert not output.exists()


class TestTruncateTrailingData:
    """Tests for _truncate_trailing_data."""

    def test_trailing_bytes_removed(self, tmp_dir: Path) -> None:
        """Bytes after %%EOF and one EOL are cut."""
        path = tmp_dir / "t.pdf"
        path.write_bytes(b"%PDF-1.4\n%%EOF\r\ngarbage")
        assert _truncate_trailing_data(path) is True
        assert path.read_bytes() == b"%PDF-1.4\n%%EOF\r\n"

    def test_clean_file_untouched(self, tmp_dir: Path) -> None:
        """A file ending in %%EOF and EOL is left alone."""
        path = tmp_dir / "t.pdf"
        path.write_bytes(b"%PDF-1.4\n%%EOF\n")
        assert _truncate_trailing_data(path) is False

    def test_no_marker(self, tmp_dir: Path) -> None:
        """Files without %%EOF are not modified."""
        path = tmp_dir / "t.pdf"
        path.write_bytes(b"no marker")
        assert _truncate_trailing_data(path) is False
        assert path.read_bytes() == b"no marker"
