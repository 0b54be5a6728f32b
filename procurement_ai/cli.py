"""
Command-line entry point.

Examples:
    # Dashboard for one export
    procurement-ai analyze purchases.xlsx

    # Reconcile a set of ERP exports
    procurement-ai analyze invoice.csv invoice_lines.csv grn.csv payment.csv

    # Column mapping and data quality review
    procurement-ai assess purchases.csv

    # Seeded demo dashboard
    procurement-ai demo --period weekly --seed 7
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from procurement_ai.logic.config_manager import create_config_template, get_default_config_path, load_config
from procurement_ai.logic.demo_data import PERIODS, generate_synthetic_data
from procurement_ai.logic.file_loader import FileParseError
from procurement_ai.logic.logging_utils import get_logger, log_error, setup_logging
from procurement_ai.logic.multi_file_reconciler import UploadedFile
from procurement_ai.services.analysis_service import AnalysisService

logger = get_logger(__name__)


def _read_upload(path: Path) -> UploadedFile:
    return UploadedFile(filename=path.name, content=path.read_bytes())


def _emit(payload: dict, output: Optional[Path]) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    if output:
        output.write_text(text, encoding="utf-8")
        logger.info(f"Wrote {output}")
    else:
        print(text)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procurement-ai",
        description="Procurement bottleneck analysis for spreadsheet exports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None,
                        help="Config file (default: search standard locations)")
    parser.add_argument("--log-level", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Override the configured log level")
    parser.add_argument("--log-file", action="store_true",
                        help="Also write logs to logs/procurement_ai.log")

    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Build a dashboard snapshot from one or more files")
    analyze.add_argument("files", nargs="+", type=Path)
    analyze.add_argument("--output", "-o", type=Path, default=None,
                         help="Output file (default: stdout)")

    assess = sub.add_parser("assess", help="Column mapping and data-quality review of one file")
    assess.add_argument("file", type=Path)
    assess.add_argument("--output", "-o", type=Path, default=None)

    demo = sub.add_parser("demo", help="Generate a seeded synthetic dashboard")
    demo.add_argument("--period", default="monthly", choices=PERIODS)
    demo.add_argument("--seed", type=int, default=None)
    demo.add_argument("--output", "-o", type=Path, default=None)

    init = sub.add_parser("init-config", help="Write a config template")
    init.add_argument("path", type=Path, nargs="?", default=None,
                      help="Destination (default: per-user config location)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # OPENAI_API_KEY etc. may come from a local .env
    load_dotenv()

    config = load_config(args.config)
    level_name = (args.log_level or config.get("log_level") or "INFO").upper()
    setup_logging(level=getattr(logging, level_name, logging.INFO), log_to_file=args.log_file)

    if args.command == "init-config":
        path = args.path or get_default_config_path()
        create_config_template(path)
        print(f"Config template written to {path}")
        return 0

    if args.command == "demo":
        _emit(generate_synthetic_data(args.period, args.seed).to_dict(), args.output)
        return 0

    service = AnalysisService(config=config)
    try:
        if args.command == "assess":
            upload = _read_upload(args.file)
            result = service.assess_file(upload.content, upload.filename)
        else:
            result = service.analyze_files([_read_upload(p) for p in args.files])
    except FileParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(log_error(e, "reading the input files"), file=sys.stderr)
        return 2

    _emit(result.to_dict(), args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
