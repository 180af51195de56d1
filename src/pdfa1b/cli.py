# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Click-based CLI for pdfa1b.

This module provides the command-line interface for merging images and
PDF files into a single PDF/A-1b document.
"""

# Standard Library
import logging
import sys
from pathlib import Path

# Third Party
import click
from colorama import Fore, Style, init

# Local
from . import __version__
from .converter import (
    DEFAULT_CREATOR_TOOL,
    DEFAULT_PRODUCER,
    DEFAULT_TITLE,
    ConversionResult,
    convert_to_pdfa1b,
)
from .exceptions import ConversionError, MetadataError
from .merge import classify_input
from .utils import DEFAULT_PAGE_SIZE, PAGE_SIZES, setup_logging

EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_FILE_NOT_FOUND = 2
EXIT_CONVERSION_FAILED = 3
EXIT_PERMISSION_ERROR = 5

logger = logging.getLogger(__name__)


def print_success(msg: str) -> None:
    """Prints a success message in green."""
    click.echo(f"{Fore.GREEN}\u2713{Style.RESET_ALL} {msg}")


def print_error(msg: str) -> None:
    """Prints an error message in red to stderr."""
    click.echo(f"{Fore.RED}\u2717 Error:{Style.RESET_ALL} {msg}", err=True)


def print_warning(msg: str) -> None:
    """Prints a warning in yellow."""
    click.echo(f"{Fore.YELLOW}\u26a0{Style.RESET_ALL} {msg}")


def _print_result(result: ConversionResult, quiet: bool) -> None:
    """Prints the conversion result in a formatted way.

    Args:
        result: The conversion result.
        quiet: If True, nothing is printed.
    """
    if quiet:
        return
    print_success(
        f"Created: {result.output_path.name} "
        f"({result.pages} page(s), PDF/A-1b, {result.processing_time:.2f}s)"
    )
    for warning in result.warnings:
        print_warning(warning)


@click.command()
@click.argument(
    "inputs",
    nargs=-1,
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.option(
    "-o",
    "--output",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path for the output PDF/A-1b file",
)
@click.option(
    "--title",
    default=DEFAULT_TITLE,
    show_default=True,
    help="Document title",
)
@click.option(
    "--creator-tool",
    default=DEFAULT_CREATOR_TOOL,
    show_default=True,
    help="Creating application recorded in the metadata",
)
@click.option(
    "--producer",
    default=DEFAULT_PRODUCER,
    show_default=True,
    help="PDF producer recorded in the metadata",
)
@click.option(
    "--page-size",
    type=click.Choice(sorted(PAGE_SIZES)),
    default=DEFAULT_PAGE_SIZE,
    show_default=True,
    help="Page size for image pages",
)
@click.option(
    "--icc-profile",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="RGB ICC profile for the output intent (default: built-in sRGB)",
)
@click.option(
    "--deep-alpha-reset",
    is_flag=True,
    help="Reset transparency constants in nested Form XObjects at any depth",
)
@click.option(
    "-f",
    "--force",
    is_flag=True,
    help="Overwrite an existing output file",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    help="Only output errors",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Detailed output",
)
@click.version_option(version=__version__)
def main(
    inputs: tuple[Path, ...],
    output: Path,
    title: str,
    creator_tool: str,
    producer: str,
    page_size: str,
    icc_profile: Path | None,
    deep_alpha_reset: bool,
    force: bool,
    quiet: bool,
    verbose: bool,
) -> None:
    """Merges images and PDF files into one PDF/A-1b document.

    INPUT... are JPEG, PNG or PDF files, merged in the given order.
    Files of any other type are skipped with a warning.
    """
    # Initialize colorama for Windows compatibility
    init()

    setup_logging(verbose=verbose, quiet=quiet)

    try:
        # Unsupported inputs are skipped by the merge stage
        missing = [
            p for p in inputs if classify_input(p) is not None and not p.is_file()
        ]
        if missing:
            raise FileNotFoundError(
                f"Input file not found: {', '.join(str(p) for p in missing)}"
            )

        result = convert_to_pdfa1b(
            list(inputs),
            output,
            title=title,
            creator_tool=creator_tool,
            producer=producer,
            page_size=page_size,
            icc_profile=icc_profile,
            deep_alpha_reset=deep_alpha_reset,
            force_overwrite=force,
            show_progress=not quiet,
        )
        _print_result(result, quiet)
        exit_code = EXIT_SUCCESS

    except FileNotFoundError as e:
        print_error(str(e))
        exit_code = EXIT_FILE_NOT_FOUND
    except PermissionError as e:
        print_error(f"Access denied: {e}")
        exit_code = EXIT_PERMISSION_ERROR
    except MetadataError as e:
        print_error(f"Invalid metadata: {e}")
        exit_code = EXIT_CONVERSION_FAILED
    except ConversionError as e:
        print_error(str(e))
        exit_code = EXIT_CONVERSION_FAILED
    except Exception as e:
        logger.exception("Unexpected error")
        print_error(f"Unexpected error: {e}")
        exit_code = EXIT_GENERAL_ERROR

    sys.exit(exit_code)
