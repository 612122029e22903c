from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from collections.abc import Sequence
from datetime import date
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, IngestConfig, default_config, load_config
from ..csvfile.reader import CsvParseError, parse_csv
from ..csvfile.validation import detect_duplicates, validate_rows
from ..db.connection import connect
from ..db.store import StoreError
from ..excel.reader import WorkbookError, load_workbook
from ..logging.error_log import ErrorLogBuffer, records_for_import
from ..logging.init import log_summary, setup_logging
from ..models.error_record import ErrorRecord
from ..models.upload import DuplicateStrategy, ImportRequest, UploadStatus
from ..services import registry
from ..services.import_engine import UnknownTableError, import_rows
from ..services.migration import dry_run, import_workbook, parse_workbook
from ..services.rollback import RollbackError, rollback_upload
from ..services.summary import render_summary_line, render_workbook_summary_line

"""CLI entrypoint (``metrics-ingest``).

Exit codes:
    0  everything succeeded
    2  partial: some rows or tables were rejected
    1  fatal: configuration, database, precondition or parse failure
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

# replaced in tests
_open_store = connect


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; with ``override`` its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _parse_date(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {text!r}") from e


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="metrics-ingest", description="Weekly business metrics ingestion")
    p.add_argument("--config", type=Path, default=None, help=f"Config YAML (default: {DEFAULT_CONFIG_PATH} if present)")
    p.add_argument("--env-file", type=Path, default=Path(".env"), help="dotenv file with connection settings")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    strategies = [s.value for s in DuplicateStrategy]

    sp = sub.add_parser("csv-preview", help="Detect delimiter, columns and types of a CSV file")
    sp.add_argument("file", type=Path)
    sp.add_argument("--data-type", help="Also suggest the best matching saved mapping")

    sp = sub.add_parser("csv-import", help="Validate and import a CSV file")
    sp.add_argument("file", type=Path)
    sp.add_argument("--data-type", required=True)
    group = sp.add_mutually_exclusive_group(required=True)
    group.add_argument("--map", action="append", metavar="HEADER=FIELD", help="Column mapping (repeatable)")
    group.add_argument("--mapping-id", type=int, help="Use a saved column mapping")
    sp.add_argument("--strategy", choices=strategies, help="Duplicate strategy (default from config)")
    sp.add_argument("--dry-run", action="store_true", help="Validate and report duplicates only")
    sp.add_argument("--uploaded-by")
    sp.add_argument("--save-mapping", metavar="NAME", help="Save the --map mapping under NAME")

    sp = sub.add_parser("workbook-preview", help="Parse the reporting workbook and show what would be imported")
    sp.add_argument("file", type=Path)

    sp = sub.add_parser("workbook-import", help="Import every table found in the reporting workbook")
    sp.add_argument("file", type=Path)
    sp.add_argument("--strategy", choices=strategies, default=DuplicateStrategy.OVERWRITE.value)
    sp.add_argument("--uploaded-by")

    sp = sub.add_parser("rollback", help="Undo a completed import")
    sp.add_argument("upload_id", type=int)

    sp = sub.add_parser("history", help="List import audit records")
    sp.add_argument("--data-type")
    sp.add_argument("--status", choices=[s.value for s in UploadStatus])
    sp.add_argument("--since", type=_parse_date)
    sp.add_argument("--until", type=_parse_date)

    sub.add_parser("data-types", help="List importable data types")
    sub.add_parser("init-db", help="Create the database schema")
    return p.parse_args(argv)


def _resolve_config(path: Path | None) -> IngestConfig:
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return default_config()


def _header_map(pairs: Sequence[str]) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for pair in pairs:
        header, sep, field_name = pair.rpartition("=")
        if not sep or not header.strip() or not field_name.strip():
            raise ValueError(f"invalid --map value {pair!r}, expected HEADER=FIELD")
        mapping[header.strip()] = field_name.strip()
    return mapping


def _cmd_csv_preview(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    parsed = parse_csv(
        args.file.read_bytes(),
        encoding=cfg.csv.encoding,
        sample_size=cfg.csv.sample_size,
        preview_rows=cfg.csv.preview_rows,
    )
    payload = parsed.to_dict()
    if args.data_type:
        registry.get_data_type(args.data_type)
        with _open_store(cfg.database) as store:
            best = registry.best_saved_mapping(store.list_mappings(args.data_type), parsed.headers)
        payload["suggested_mapping"] = (
            {"id": best[0].id, "name": best[0].name, "score": best[1], "mapping": best[0].mapping} if best else None
        )
    logger.info(f"{args.file.name}: {parsed.total_rows} rows, {len(parsed.headers)} columns, delimiter={parsed.delimiter}")
    _print_json(payload)
    return EXIT_SUCCESS_ALL


def _cmd_csv_import(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    data_type = registry.get_data_type(args.data_type)
    parsed = parse_csv(args.file.read_bytes(), encoding=cfg.csv.encoding, sample_size=cfg.csv.sample_size)
    strategy = DuplicateStrategy(args.strategy) if args.strategy else cfg.imports.duplicate_strategy
    buffer = ErrorLogBuffer()

    with _open_store(cfg.database) as store:
        mapping_id = args.mapping_id
        if mapping_id is not None:
            saved = store.get_mapping(mapping_id)
            if saved is None:
                logger.error(f"saved mapping {mapping_id} not found")
                return EXIT_FATAL
            header_map = dict(saved.mapping)
        else:
            header_map = _header_map(args.map)

        mappings = registry.build_field_mappings(data_type.id, header_map)
        mapped = {m.db_field for m in mappings}
        missing = [f for f in registry.required_fields(data_type.id) if f not in mapped]
        if missing:
            logger.error(f"mapping for {data_type.id} is missing required fields: {', '.join(missing)}")
            return EXIT_FATAL
        unknown_headers = [m.csv_header for m in mappings if m.csv_header not in parsed.headers]
        if unknown_headers:
            logger.warning(f"mapped headers not in file: {', '.join(unknown_headers)}")

        validation = validate_rows(parsed.rows, mappings)
        s = validation.summary
        logger.info(
            f"validation: total={s.total} passed={s.passed} warnings={s.warnings} "
            f"errors={s.errors} blank_skipped={s.blank_skipped}"
        )
        duplicates = detect_duplicates(validation.rows, "week_ending", store.existing_weeks(data_type.target_table))
        if duplicates:
            weeks = sorted({d.week_ending.isoformat() for d in duplicates})
            logger.info(f"{len(duplicates)} rows hit weeks already in {data_type.target_table}: {', '.join(weeks)}")

        if args.dry_run:
            _print_json(
                {
                    "summary": vars(s),
                    "duplicates": [
                        {"week_ending": d.week_ending.isoformat(), "row_index": d.row_index} for d in duplicates
                    ],
                    "rows": [
                        {"row_index": r.row_index, "status": r.status.value, "messages": r.messages}
                        for r in validation.rows
                        if r.messages
                    ],
                }
            )
            return EXIT_SUCCESS_ALL

        if args.save_mapping and args.map:
            mapping_id = store.save_mapping(args.save_mapping, data_type.id, header_map, args.uploaded_by)
            logger.info(f"saved mapping {args.save_mapping!r} as id={mapping_id}")

        result = import_rows(
            store,
            ImportRequest(
                data_type=data_type,
                rows=validation.rows,
                duplicate_strategy=strategy,
                file_name=args.file.name,
                mapping_id=mapping_id,
                uploaded_by=args.uploaded_by,
            ),
            timeout_seconds=cfg.imports.transaction_timeout_seconds,
            lock_table=cfg.imports.lock_target_table,
        )

    buffer.extend(records_for_import(args.file.name, result))
    log_path = buffer.flush()
    if log_path is not None:
        logger.info(f"error log: {log_path}")
    log_summary(render_summary_line(result))
    if not result.succeeded:
        return EXIT_FATAL
    return EXIT_PARTIAL_FAILURE if result.rows_failed else EXIT_SUCCESS_ALL


def _cmd_workbook_preview(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    result = dry_run(parse_workbook(load_workbook(args.file)))
    logger.info(f"{args.file.name}: {result.total_records} records, {result.total_warnings} warnings")
    _print_json(result.to_dict())
    return EXIT_SUCCESS_ALL


def _cmd_workbook_import(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    parsed = parse_workbook(load_workbook(args.file))
    buffer = ErrorLogBuffer()
    with _open_store(cfg.database) as store:
        started = time.perf_counter()
        outcomes = import_workbook(
            store,
            parsed,
            strategy=DuplicateStrategy(args.strategy),
            file_name=args.file.name,
            uploaded_by=args.uploaded_by,
            timeout_seconds=cfg.imports.transaction_timeout_seconds,
            lock_table=cfg.imports.lock_target_table,
        )
        elapsed = time.perf_counter() - started

    partial = False
    for outcome in outcomes:
        if outcome.error is not None:
            partial = True
            buffer.append(ErrorRecord.create(args.file.name, outcome.table_name, -1, "TABLE_FAILED", outcome.error))
            continue
        if outcome.result is None:
            continue
        buffer.extend(records_for_import(args.file.name, outcome.result))
        partial = partial or not outcome.result.succeeded or outcome.result.rows_failed > 0
        log_summary(render_summary_line(outcome.result))

    log_path = buffer.flush()
    if log_path is not None:
        logger.info(f"error log: {log_path}")
    log_summary(render_workbook_summary_line([o.result for o in outcomes if o.result is not None], elapsed))
    return EXIT_PARTIAL_FAILURE if partial else EXIT_SUCCESS_ALL


def _cmd_rollback(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    with _open_store(cfg.database) as store:
        result = rollback_upload(store, args.upload_id)
    _print_json({"upload_id": result.upload_id, "rows_deleted": result.rows_deleted, "rows_restored": result.rows_restored})
    return EXIT_SUCCESS_ALL


def _cmd_history(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    with _open_store(cfg.database) as store:
        uploads = store.list_uploads(
            data_type=args.data_type,
            status=UploadStatus(args.status) if args.status else None,
            date_from=args.since,
            date_to=args.until,
        )
    _print_json([u.to_dict() for u in uploads])
    return EXIT_SUCCESS_ALL


def _cmd_data_types(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    _print_json(
        {
            category: [
                {
                    "id": dt.id,
                    "name": dt.name,
                    "description": dt.description,
                    "target_table": dt.target_table,
                    "fixed_fields": dt.fixed_fields,
                    "fields": [vars(f) for f in dt.fields],
                }
                for dt in types
            ]
            for category, types in registry.grouped().items()
        }
    )
    return EXIT_SUCCESS_ALL


def _cmd_init_db(args: argparse.Namespace, cfg: IngestConfig, logger: logging.Logger) -> int:
    with _open_store(cfg.database) as store:
        store.create_schema()
    return EXIT_SUCCESS_ALL


COMMANDS = {
    "csv-preview": _cmd_csv_preview,
    "csv-import": _cmd_csv_import,
    "workbook-preview": _cmd_workbook_preview,
    "workbook-import": _cmd_workbook_import,
    "rollback": _cmd_rollback,
    "history": _cmd_history,
    "data-types": _cmd_data_types,
    "init-db": _cmd_init_db,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # only read sys.argv when no list was given, so main([]) in tests stays isolated
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        setup_logging(logging.DEBUG)
        logger.debug("debug mode enabled")

    _load_env_file(args.env_file, override=True)
    try:
        cfg = _resolve_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        return COMMANDS[args.command](args, cfg, logger)
    except (RollbackError, UnknownTableError, registry.UnknownDataTypeError, ValueError) as e:
        logger.error(str(e))
    except (CsvParseError, WorkbookError) as e:
        logger.error(f"parse: {e}")
    except OSError as e:
        logger.error(f"file: {e}")
    except StoreError as e:
        logger.error(f"database: {e}")
    return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
