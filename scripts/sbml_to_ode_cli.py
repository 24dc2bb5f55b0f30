"""Command line interface for translating SBML models into ODE model files.

The tool wraps :func:`src.sbml_ode.petab_model.build_petab_model`: it reads an
SBML file, optionally promotes condition-dependent initial values from PEtab
condition and parameter tables, and writes ``<model>.jl`` and
``<model>_callbacks.jl`` into the output directory. Existing files are reused
unless ``--force`` is given.

Typical usage::

    python -m scripts.sbml_to_ode_cli --sbml model.xml --out-dir build \
        --model-name exchange --conditions conditions.tsv --parameters parameters.tsv
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

from src.sbml_ode.config import BuildOptions
from src.sbml_ode.errors import TranslationError
from src.sbml_ode.petab_model import build_petab_model

LOGGER = logging.getLogger("sbml_to_ode_cli")

_DEFAULT_OUT_DIR = Path("artifacts") / "julia"


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Translate an SBML model into ModelingToolkit source files")
    parser.add_argument("--sbml", type=Path, required=True, help="SBML model file")
    parser.add_argument(
        "--out-dir",
        type=Path,
        default=_DEFAULT_OUT_DIR,
        help=f"Directory receiving the generated files (default: {_DEFAULT_OUT_DIR})",
    )
    parser.add_argument("--model-name", default=None, help="Model name (default: SBML file stem)")
    parser.add_argument("--conditions", type=Path, default=None, help="PEtab condition table (TSV)")
    parser.add_argument("--parameters", type=Path, default=None, help="PEtab parameter table (TSV)")
    parser.add_argument("--force", action="store_true", help="Rebuild even if cached files exist")
    parser.add_argument(
        "--keep-ifelse",
        action="store_true",
        help="Keep time-dependent ifelse expressions instead of event-driven parameters",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Translate and report without writing any file",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_args(argv)
    _configure_logging(args.verbose)
    model_name = args.model_name or args.sbml.stem
    LOGGER.info("SBML file: %s", args.sbml)
    LOGGER.info("Output directory: %s", args.out_dir)
    options = BuildOptions(
        force_rebuild=args.force,
        ifelse_to_event=not args.keep_ifelse,
        write_to_file=not args.dry_run,
    )
    try:
        build = build_petab_model(
            args.sbml,
            conditions=args.conditions,
            parameters=args.parameters,
            dir_julia=args.out_dir,
            model_name=model_name,
            options=options,
        )
    except TranslationError as exc:
        LOGGER.error("%s", exc)
        LOGGER.debug("Full exception", exc_info=True)
        return 1
    LOGGER.info(
        "Model %s: %d states, %d parameters",
        build.model_name,
        len(build.ode_system.states),
        len(build.ode_system.parameters),
    )
    if args.dry_run:
        LOGGER.info("Dry run requested; no files written")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
