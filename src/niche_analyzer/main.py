"""Command line interface for the niche analyzer."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .analysis_service import EXPORT_TABLES, AnalysisService, UpdateResult
from .config import Settings
from .models import AnalysisView
from .parsers import CsvFormatError
from .repository import SessionNotFoundError, SessionRepository


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_service(args: argparse.Namespace) -> AnalysisService:
    settings = Settings.load()
    db_path = Path(args.db) if args.db else settings.db_path
    return AnalysisService(repository=SessionRepository(db_path))


def print_summary(view: AnalysisView) -> None:
    summary = view.market_summary
    strength = view.strength_summary
    print(f"Analysis {view.analysis_id}")
    print(
        f"Market SV={summary.total_market_sv}, brand SV={summary.brand_sv}, "
        f"keywords={summary.total_keywords} (deleted {summary.deleted_keywords}), "
        f"brands={summary.unique_brands}, revenue={summary.total_revenue:.2f}"
    )
    print(
        f"Strength: Molto Forte={strength.molto_forte}, Forte={strength.forte}, "
        f"Medio={strength.medio}, Debole={strength.debole}"
    )


def print_update(result: UpdateResult) -> None:
    print(f"Recalculated {result.analysis_id}: market SV={result.new_market_sv}")


def cmd_analyze(args: argparse.Namespace) -> None:
    service = build_service(args)
    try:
        view = service.create_analysis_from_files(args.keywords, args.business, args.products)
    except CsvFormatError as exc:
        raise SystemExit(f"Unable to read exports: {exc}") from exc
    print_summary(view)


def cmd_show(args: argparse.Namespace) -> None:
    service = build_service(args)
    view = service.get_analysis(args.analysis_id)
    print_summary(view)
    for competitor in sorted(view.competitors, key=lambda c: c.strength_percentage, reverse=True):
        marker = " (deleted)" if competitor.is_deleted else ""
        print(
            f"ASIN {competitor.asin}: brand={competitor.brand}, "
            f"strength={competitor.strength_percentage:.2f}% {competitor.strength_level}{marker}"
        )


def cmd_update(args: argparse.Namespace) -> None:
    service = build_service(args)
    update = {
        "keywords": service.update_keywords,
        "roots": service.update_root_keywords,
        "competitors": service.update_competitors,
        "products": service.update_products,
    }[args.command]
    print_update(update(args.analysis_id, deleted=args.delete, restored=args.restore))


def cmd_export(args: argparse.Namespace) -> None:
    service = build_service(args)
    destination = Path(args.destination)
    if not destination.is_absolute():
        destination = Settings.load().export_dir / destination
    destination = service.export_to_csv(args.analysis_id, args.table, destination)
    print(f"Exported {args.table} to {destination}")


def cmd_dashboard(args: argparse.Namespace) -> None:
    import subprocess

    script_path = Path(__file__).resolve().parent / "dashboard.py"
    subprocess.run(["streamlit", "run", str(script_path)], check=False)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Analyse Amazon niche keyword and competitor exports")
    parser.add_argument("--db", help="SQLite database holding analysis sessions")
    parser.add_argument("--log-level", help="Logging level (defaults to the configured level)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser("analyze", help="Create an analysis from three CSV exports")
    analyze_parser.add_argument("keywords", help="Keyword ranking CSV")
    analyze_parser.add_argument("business", help="Seller/business metrics CSV")
    analyze_parser.add_argument("products", help="Catalog (Keepa) CSV")
    analyze_parser.set_defaults(func=cmd_analyze)

    show_parser = subparsers.add_parser("show", help="Print the market summary and competitor strength")
    show_parser.add_argument("analysis_id")
    show_parser.set_defaults(func=cmd_show)

    for name, noun in (
        ("keywords", "keyword phrases"),
        ("roots", "root words"),
        ("competitors", "competitor ASINs"),
        ("products", "product ASINs"),
    ):
        update_parser = subparsers.add_parser(name, help=f"Delete or restore {noun}")
        update_parser.add_argument("analysis_id")
        update_parser.add_argument("--delete", nargs="+", default=[], help=f"{noun} to delete")
        update_parser.add_argument("--restore", nargs="+", default=[], help=f"{noun} to restore")
        update_parser.set_defaults(func=cmd_update)

    export_parser = subparsers.add_parser("export", help="Export a table of an analysis to CSV")
    export_parser.add_argument("analysis_id")
    export_parser.add_argument("table", choices=EXPORT_TABLES)
    export_parser.add_argument("destination", help="CSV file to write, relative to the export directory")
    export_parser.set_defaults(func=cmd_export)

    dashboard_parser = subparsers.add_parser("dashboard", help="Launch the Streamlit dashboard")
    dashboard_parser.set_defaults(func=cmd_dashboard)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = create_parser()
    args = parser.parse_args(argv)
    level = (args.log_level or Settings.load().log_level).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise SystemExit(f"Unknown log level: {args.log_level}")
    setup_logging(level)
    try:
        args.func(args)
    except SessionNotFoundError as exc:
        raise SystemExit(str(exc)) from exc


if __name__ == "__main__":
    main()
