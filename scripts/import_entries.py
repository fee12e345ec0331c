#!/usr/bin/env python3
"""Bulk-load dictionary entries from a JSON file into the SQLite store."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Iterator, List, Sequence

from phrase_lexicon.app.data.database import SQLiteEntryRepository
from phrase_lexicon.core import Entry, InvalidArgument, LexiconError
from phrase_lexicon.core.entry import LIST_FIELDS
from phrase_lexicon.utils.logging_config import configure_logging
from phrase_lexicon.utils.settings import load_settings


def _load_records(path: Path) -> List[Any]:
    """Read a JSON list of entries, or an object holding one under ``entries``."""

    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("entries", [])
    if not isinstance(payload, list):
        raise InvalidArgument(f"{path} must contain a list of entries")
    return payload


def _iter_entries(records: Sequence[Any]) -> Iterator[Entry]:
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise InvalidArgument(f"record {index} is not an object")
        phrase = record.get("phrase", record.get("words"))
        if not isinstance(phrase, str) or not phrase.strip():
            raise InvalidArgument(f"record {index} has no phrase")
        # Combinations are always recomputed so they match the store's index keys.
        yield Entry.create(phrase, **{name: record.get(name) for name in LIST_FIELDS})


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("source", type=Path, help="JSON file with the entries to import.")
    parser.add_argument(
        "--database",
        default=None,
        help="SQLite database path (defaults to LEXICON_DB_PATH or lexicon.db).",
    )
    parser.add_argument("--log-level", default=None, help="Logging level, e.g. DEBUG.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(args.log_level or settings.log_level)

    repository = SQLiteEntryRepository(args.database or settings.db_path)
    try:
        entries = list(_iter_entries(_load_records(args.source)))
        created = repository.import_entries(entries)
    except (LexiconError, ValueError) as exc:
        print(f"Import failed: {exc}", file=sys.stderr)
        return 1
    finally:
        repository.close()

    print(f"Imported {created} new entries ({len(entries) - created} already stored).")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
