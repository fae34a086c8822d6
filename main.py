"""
main.py

layoutsketch - command-line export

Re-imports an ``annotations.json`` produced by the editor, checks it
against the nesting rules, and writes the Markdown implementation request.

Usage:
    python main.py annotations.json [--image-name NAME] [--requirements FILE]
                   [-o prompt.md] [--records-out annotations.json] [-v]

Dependencies:
    pip install platformdirs tomli-w jsonschema
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from debug_trace import close_log, enable_trace
from hierarchy import HierarchyManager, InvalidDocumentError
from models import ReferenceImage
from prompt_export import build_export
from settings import AppSettings, get_settings

log = logging.getLogger("layoutsketch")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="layoutsketch",
        description="Generate a UI implementation request from exported annotations.",
    )
    parser.add_argument("annotations", type=Path, help="annotations.json to import")
    parser.add_argument("--image-name", help="reference image name shown in the report")
    parser.add_argument("--requirements", type=Path,
                        help="text file replacing the implementation requirements section")
    parser.add_argument("-o", "--output", type=Path,
                        help="write the report here instead of stdout")
    parser.add_argument("--records-out", type=Path,
                        help="also write the normalized record array here")
    parser.add_argument("--no-validate", action="store_true",
                        help="skip JSON Schema validation of the records")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log progress and trace hierarchy operations")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    settings_manager = get_settings()
    settings_manager.ensure_file_complete()
    settings = settings_manager.settings
    if args.verbose or settings.debug.trace:
        enable_trace(True, settings.debug.log_file)

    try:
        return _run(args, settings)
    finally:
        close_log()


def _run(args: argparse.Namespace, settings: AppSettings) -> int:
    try:
        with open(args.annotations, "r", encoding="utf-8") as f:
            records = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.error("cannot read %s: %s", args.annotations, e)
        return 1

    requirements = None
    if args.requirements is not None:
        try:
            requirements = args.requirements.read_text(encoding="utf-8")
        except OSError as e:
            log.error("cannot read %s: %s", args.requirements, e)
            return 1

    image_name = args.image_name or settings.export.image_name
    manager = HierarchyManager(image=ReferenceImage(name=image_name))
    validate = False if args.no_validate else None
    try:
        manager.load_records(records, validate=validate)
    except InvalidDocumentError as e:
        for msg in e.errors:
            log.error("%s: %s", args.annotations, msg)
        return 1

    bundle = build_export(manager, image_name=image_name, requirements=requirements,
                          validate=validate)

    if args.output is not None:
        args.output.write_text(bundle.report_text, encoding="utf-8")
        log.info("wrote %s", args.output)
    else:
        sys.stdout.write(bundle.report_text)

    if args.records_out is not None:
        args.records_out.write_text(bundle.records_json + "\n", encoding="utf-8")
        log.info("wrote %s", args.records_out)

    return 0


if __name__ == "__main__":
    sys.exit(main())
