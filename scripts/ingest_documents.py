"""Script to bulk-ingest local documents into the chunk store and vector index."""

import argparse
import asyncio
import sys
from pathlib import Path

from docbot.core.di_container import container
from docbot.core.exceptions import AppError, ConfigurationError
from docbot.core.logging import setup_logging
from docbot.documents.extractors import ExtractorRegistry, normalize_extension


def collect_files(paths: list[str], recursive: bool) -> list[Path]:
    """Expand directories into the supported files they contain."""
    supported = set(ExtractorRegistry.supported())
    files: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            pattern = "**/*" if recursive else "*"
            files.extend(
                p for p in sorted(path.glob(pattern)) if p.is_file() and normalize_extension(p.name) in supported
            )
        elif path.is_file():
            files.append(path)
        else:
            print(f"Skipping {raw}: not found")
    return files


async def ingest_documents(paths: list[str], recursive: bool = False, created_by: str | None = None) -> int:
    """Ingest files one by one; returns the process exit code."""
    setup_logging(log_level="INFO", log_to_file=False)

    try:
        container.config().require_provider_keys()
        service = container.ingestion_service()
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}")
        return 1

    files = collect_files(paths, recursive)
    if not files:
        print("No supported files found")
        return 1

    print(f"Ingesting {len(files)} file(s)...")
    failures = 0
    not_searchable = 0
    for path in files:
        try:
            result = await service.ingest(path.read_bytes(), path.name, created_by=created_by)
        except AppError as e:
            failures += 1
            print(f"  FAILED  {path.name}: {e.message}")
            continue

        if not result.searchable:
            not_searchable += 1
        print(f"  {'OK' if result.searchable else 'PARTIAL'}  {result.message}")

    print(f"Done: {len(files) - failures} stored, {not_searchable} not yet searchable, {failures} failed")
    return 1 if failures else 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Ingest documents for the chatbot")
    parser.add_argument("paths", nargs="+", help="Files or directories to ingest")
    parser.add_argument("-r", "--recursive", action="store_true", help="Descend into subdirectories")
    parser.add_argument("--created-by", default=None, help="User id recorded on the chunks")
    args = parser.parse_args()
    return asyncio.run(ingest_documents(args.paths, args.recursive, args.created_by))


if __name__ == "__main__":
    sys.exit(main())
