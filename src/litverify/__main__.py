import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .core.config import settings
from .services.citation_formatter import get_available_styles
from .services.http_client import HttpClient
from .services.verifier import CitationVerifier, build_default_sources, summarize
from .types import ValidationError
from .utils.errors import validate_source

logger = logging.getLogger("litverify")

STATUS_LABELS = {
    "found": "FOUND",
    "similar": "SIMILAR",
    "not_found": "NOT FOUND",
}


def _print_progress(source: str, state: str, count: Optional[int]) -> None:
    if state == "completed":
        logger.info(f"  {source}: {count} results")
    elif state == "error":
        logger.warning(f"  {source}: failed")


async def run(lines: List[str], style: str, only: Optional[List[str]] = None) -> int:
    async with HttpClient(settings) as http_client:
        sources = build_default_sources(http_client, settings)
        if only:
            names = [source.name for source in sources]
            wanted = {validate_source(name, names) for name in only}
            sources = [source for source in sources if source.name in wanted]

        verifier = CitationVerifier(sources, settings)
        results = await verifier.verify_many(lines, style, _print_progress)

    for result in results:
        print(f"[{STATUS_LABELS[result.status]}] {result.original_text.strip()}")
        print(f"    {result.rendered_citation}")
        if result.source_errors:
            print(f"    (failed sources: {', '.join(result.source_errors)})")
        if result.status == "not_found":
            for link in result.search_links:
                print(f"    {link.name}: {link.url}")

    summary = summarize(results)
    print(f"\nfound: {summary.found}, similar: {summary.similar}, not found: {summary.not_found}")
    return 0 if summary.not_found == 0 else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Verify citations against bibliographic databases.")
    parser.add_argument("file", nargs="?", help="File with one citation per line (default: stdin).")
    parser.add_argument("--style", default=settings.DEFAULT_STYLE, choices=get_available_styles(),
                        help="Citation style for the rendered output.")
    parser.add_argument("--source", action="append", dest="sources", metavar="NAME",
                        help="Only query this source, e.g. --source Crossref (repeatable).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show per-source progress.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if args.file:
        with open(args.file, encoding="utf-8") as f:
            lines = f.read().splitlines()
    else:
        lines = sys.stdin.read().splitlines()

    try:
        exit_code = asyncio.run(run(lines, args.style, args.sources))
    except ValidationError as e:
        parser.error(str(e))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
