#!/usr/bin/env python3
"""
Previews an inventory import from the command line.

Usage:
    python scripts/preview_import.py <file> <schema.json> [--header-row N] [--json]

schema.json is a JSON array of column definitions, e.g.
    [{"id": "c1", "name": "Name", "type": "text", "required": true},
     {"id": "c2", "name": "Quantity", "type": "number"}]
"""
import argparse
import json
import logging
import sys
from pathlib import Path

# Project root on the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from core.config import get_config
from core.logger import setup_colored_logging
from ingest.errors import ImportPipelineError
from ingest.models import ColumnDefinition
from ingest.pipeline import run_import
from ingest.sanitization import format_warning_type

logger = logging.getLogger(__name__)


def load_schema(schema_path: Path):
    with open(schema_path, 'r', encoding='utf-8') as f:
        payload = json.load(f)
    return [ColumnDefinition.model_validate(item) for item in payload]


def print_preview(preview, columns) -> None:
    print(f"File: {preview.file_name} ({preview.file_type})")
    print(f"Header row: {preview.header_row_index} (suggested {preview.suggested_header_row})")
    print("")
    print("Mappings:")
    names = {c.id: c.name for c in columns}
    for mapping in preview.mappings:
        if mapping.skip:
            target = "(skipped)"
        elif mapping.new_column is not None:
            target = f"new column '{mapping.new_column.name}'"
        else:
            target = names.get(mapping.schema_column_id, mapping.schema_column_id)
        print(f"  {mapping.file_column_name!r:30} -> {target} [{mapping.match_type}, {mapping.confidence:.2f}]")

    print("")
    print(f"Rows: {preview.stats['rows_total']}, with warnings: {preview.stats['rows_with_warnings']}")
    for i, row in enumerate(preview.rows[:20], start=1):
        values = ", ".join(f"{names[k]}={v!r}" for k, v in row.data.items())
        print(f"  {i:>3}. {values}")
        for column_id, warning in row.warnings.items():
            print(f"       ! {names[column_id]}: {format_warning_type(warning.type)} - {warning.message}")
    if len(preview.rows) > 20:
        print(f"  ... {len(preview.rows) - 20} more rows")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Preview an inventory import")
    parser.add_argument("file", type=Path, help="File to import (.xlsx, .xls, .csv, .json)")
    parser.add_argument("schema", type=Path, help="JSON file with the schema columns")
    parser.add_argument("--header-row", type=int, default=None, help="Header row index (0-based)")
    parser.add_argument("--json", action="store_true", help="Print the preview payload as JSON")
    args = parser.parse_args(argv)

    setup_colored_logging(get_config().service_name, get_config().log_level)

    for path in (args.file, args.schema):
        if not path.exists():
            print(f"File not found: {path}")
            return 1

    columns = load_schema(args.schema)
    try:
        preview = run_import(
            args.file.read_bytes(),
            args.file.name,
            columns,
            header_row_index=args.header_row,
        )
    except (ImportPipelineError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1

    if args.json:
        print(json.dumps(preview.to_payload(), ensure_ascii=False, indent=2, default=str))
    else:
        print_preview(preview, columns)
    return 0


if __name__ == "__main__":
    sys.exit(main())
