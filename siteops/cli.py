from __future__ import annotations

import argparse
import json

from siteops.core.config import get_settings
from siteops.core.logging import configure_logging
from siteops.domain.materials import build_material_report, total_available, total_consumed
from siteops.persistence.pg import init_db, session_scope


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SiteOps CLI")
    top = parser.add_subparsers(dest="command", required=True)

    top.add_parser("init-db", help="Create database tables")

    serve = top.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    materials = top.add_parser("materials", help="Material inventory operations")
    materials_sub = materials.add_subparsers(dest="materials_command", required=True)

    availability = materials_sub.add_parser("availability", help="Available and consumed totals per material code")
    availability.add_argument("--code", default=None, help="Restrict to one material code")

    report = materials_sub.add_parser("report", help="Monthly material report for a project")
    report.add_argument("project_id")
    report.add_argument("--year", type=int, required=True)
    report.add_argument("--month", type=int, required=True)

    return parser


def _print(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _materials_availability(args: argparse.Namespace) -> int:
    with session_scope() as session:
        consumed = {item.material_code: item.total for item in total_consumed(session, args.code)}
        rows = [
            {
                "material_code": item.material_code,
                "total_available": item.total,
                "total_consumed": consumed.get(item.material_code, 0),
            }
            for item in total_available(session, args.code)
        ]
    _print(rows)
    return 0


def _materials_report(args: argparse.Namespace) -> int:
    with session_scope() as session:
        lines = build_material_report(session, args.project_id, year=args.year, month=args.month)
        payload = [line.to_dict() for line in lines]
    _print({"project_id": args.project_id, "year": args.year, "month": args.month, "materials": payload})
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "siteops.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "init-db":
        init_db()
        return 0
    if args.command == "serve":
        return _serve(args)

    init_db()
    if args.command == "materials" and args.materials_command == "availability":
        return _materials_availability(args)
    if args.command == "materials" and args.materials_command == "report":
        return _materials_report(args)

    parser.error("unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
