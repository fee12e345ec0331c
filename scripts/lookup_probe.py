#!/usr/bin/env python3
"""CLI helper to run one phrase through the lookup pipeline."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Sequence

from phrase_lexicon.app.app import PhraseLexiconApp
from phrase_lexicon.utils.logging_config import configure_logging
from phrase_lexicon.utils.settings import load_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("phrase", help="Phrase to look up.")
    parser.add_argument("--database", default=None, help="SQLite database path.")
    parser.add_argument("--generator-url", default=None, help="Generation service endpoint.")
    parser.add_argument("--json", action="store_true", help="Print the raw response as JSON.")
    parser.add_argument(
        "--show-trace",
        action="store_true",
        help="Print the lookup telemetry snapshot after the result.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    overrides = {}
    if args.database:
        overrides["db_path"] = args.database
    if args.generator_url:
        overrides["generator_url"] = args.generator_url
    settings = load_settings(**overrides)
    configure_logging(settings.log_level)

    app = PhraseLexiconApp(settings)
    response, trace = app.lookup_service.lookup_with_trace(args.phrase)

    if args.json:
        json.dump(response.to_dict(), sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")
    else:
        print(app.lookup_service.format_response(args.phrase, response))

    if args.show_trace:
        json.dump(trace, sys.stdout, indent=2, default=str)
        sys.stdout.write("\n")
    return 0 if response.succeeded else 2


if __name__ == "__main__":
    raise SystemExit(main())
