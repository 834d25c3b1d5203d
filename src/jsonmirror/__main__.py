from __future__ import annotations

import argparse
import importlib
import json
import sys
from dataclasses import replace
from typing import Any, List, Optional, Sequence

from rich.console import Console

from .api_client import ApiClientError, JsonSourceClient
from .config import Settings
from .db_connector import DatabaseSession
from .declarations import is_record
from .errors import JsonPathError, MirrorError
from .json_path import resolve_array, resolve_object
from .logging_utils import get_logger, setup_logging
from .models import HttpConfig
from .registry import ModelRegistry
from .schema_loader import load_schema

console = Console()
LOGGER = get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jsonmirror",
        description="Mirror a JSON object or array into relational tables.",
    )
    parser.add_argument("record", help="Name of the record type the document maps to")
    parser.add_argument("source", help="Path or http(s) URL of the JSON document")
    models = parser.add_mutually_exclusive_group(required=True)
    models.add_argument("--models", help="Python module declaring the record classes")
    models.add_argument("--schema", help="YAML file declaring the record types")
    parser.add_argument("--path", default="", help="Dotted path to the object or array to write")
    parser.add_argument("--database-url", help="Overrides MIRROR_DATABASE_URL")
    parser.add_argument(
        "--apply-schema",
        action="store_true",
        help="Create missing tables (recreating them on a model version change)",
    )
    return parser


def load_registry(args: argparse.Namespace) -> ModelRegistry:
    if args.schema:
        return load_schema(args.schema)
    module = importlib.import_module(args.models)
    records = [
        value
        for value in vars(module).values()
        if isinstance(value, type) and is_record(value)
    ]
    if not records:
        raise MirrorError(f"Module {args.models} declares no record classes")
    return ModelRegistry(records)


def load_document(source: str, http: HttpConfig) -> Any:
    if source.startswith(("http://", "https://")):
        with JsonSourceClient(http) as client:
            return client.fetch(source)
    with open(source, "r", encoding="utf-8") as fh:
        return json.load(fh)


def select_payload(document: Any, path: str) -> Any:
    """Return the object or array at ``path`` inside ``document``."""
    if not path:
        return document
    if not isinstance(document, dict):
        raise JsonPathError("paths can only be resolved inside a JSON object")
    try:
        return resolve_array(document, path)
    except JsonPathError:
        return resolve_object(document, path)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    setup_logging(settings.log_level)

    try:
        registry = load_registry(args)
        model = registry.lookup(args.record)
        db_config = settings.database_config()
        if args.database_url:
            db_config = replace(db_config, url=args.database_url)
        if args.apply_schema:
            db_config = replace(db_config, apply_schema=True)
    except (MirrorError, ImportError, OSError) as exc:
        LOGGER.error("Configuration error: %s", exc)
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        payload = select_payload(load_document(args.source, settings.http_config()), args.path)
    except (ApiClientError, JsonPathError, OSError, ValueError) as exc:
        LOGGER.error("Failed to load %s: %s", args.source, exc)
        print(f"Source error: {exc}", file=sys.stderr)
        sys.exit(2)

    session = DatabaseSession(db_config, registry)
    try:
        persister = session.persister(settings.write_options())
        if isinstance(payload, list):
            identities: List[Any] = persister.write_array(model, payload)
        else:
            identities = [persister.write_object(model, payload)]
    except MirrorError as exc:
        LOGGER.exception("Write failed")
        print(f"Write failed: {exc}", file=sys.stderr)
        sys.exit(3)
    finally:
        session.dispose()

    console.print(f"Wrote {len(identities)} {args.record} record(s): {identities}", markup=False)


if __name__ == "__main__":
    main()
