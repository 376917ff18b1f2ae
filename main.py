"""
Batch product extraction over saved pages.

Processes all HTML product pages in parallel using asyncio.gather,
running each through: parse -> extract, then writes the found records
to a JSON file and prints a report.
"""

import argparse
import asyncio
import logging
import time
from pathlib import Path

import orjson

from models import ExtractionReport, NormalizedProduct, NotFound
from pipeline import extract_from_html

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
OUTPUT_FILE = Path(__file__).parent / "products.json"

METHODS = ["json_ld", "meta_tags", "analytics"]


async def process_file(filepath: Path) -> tuple[NormalizedProduct | NotFound, ExtractionReport]:
    """Process a single HTML file through parse -> extract."""
    logger.info(f"Processing {filepath.name}...")

    html = await asyncio.to_thread(filepath.read_text, encoding="utf-8")
    result, report = extract_from_html(html)

    if report.parse_errors:
        logger.info(f"  Skipped {len(report.parse_errors)} malformed JSON-LD payload(s)")
    if isinstance(result, NotFound):
        logger.info("  Result: not found")
    else:
        logger.info(
            f"  Result: {result.name} ({result.brand}) - "
            f"{result.price} {result.price_currency} | "
            f"Images: {len(result.image_urls)} | via {report.method}"
        )
    return result, report


async def process_all(
    data_dir: Path,
) -> tuple[list[Path], list[NormalizedProduct | NotFound], list[ExtractionReport], int]:
    """Process all HTML files in data_dir concurrently.

    Returns (files, results, reports, failure_count); files/results/reports line up.
    """
    html_files = sorted(data_dir.glob("*.html"))
    logger.info(f"Found {len(html_files)} HTML files to process")

    outcomes = await asyncio.gather(
        *[process_file(f) for f in html_files],
        return_exceptions=True,
    )

    files: list[Path] = []
    results: list[NormalizedProduct | NotFound] = []
    reports: list[ExtractionReport] = []
    failures = 0

    for filepath, outcome in zip(html_files, outcomes):
        if isinstance(outcome, Exception):
            logger.error(f"Failed to process {filepath.name}: {outcome}", exc_info=outcome)
            failures += 1
        else:
            result, report = outcome
            files.append(filepath)
            results.append(result)
            reports.append(report)

    return files, results, reports, failures


def write_products(
    output: Path,
    files: list[Path],
    results: list[NormalizedProduct | NotFound],
    reports: list[ExtractionReport],
) -> int:
    """Write found records (camelCase, as the registry form expects) to output."""
    records = []
    for filepath, result, report in zip(files, results, reports):
        if isinstance(result, NotFound):
            continue
        record = result.model_dump(by_alias=True)
        record["file"] = filepath.name
        record["source"] = report.method
        records.append(record)

    output.write_bytes(orjson.dumps(records, option=orjson.OPT_INDENT_2))
    return len(records)


def print_report(
    files: list[Path],
    results: list[NormalizedProduct | NotFound],
    reports: list[ExtractionReport],
    failures: int,
    wall_clock: float,
) -> None:
    total_files = len(files) + failures
    found = sum(1 for r in results if isinstance(r, NormalizedProduct))

    print(f"\n{'='*70}")
    print("EXTRACTION REPORT")
    print(f"{'='*70}")

    print(f"\n── Reliability ──")
    print(f"  Files attempted:  {total_files}")
    print(f"  Product found:    {found}")
    print(f"  Not found:        {len(results) - found}")
    print(f"  Failed:           {failures}")

    if not files:
        print("\n  No pages processed.")
        return

    print(f"\n── Source ──")
    for method in METHODS:
        count = sum(1 for rep in reports if rep.method == method)
        print(f"  {method:<12} {count}/{len(files)}")
    print(f"  JSON-LD payloads that failed to parse: {sum(len(rep.parse_errors) for rep in reports)}")

    print(f"\n── Per file ──")
    print(f"  {'File':<30} {'Source':<10} {'Price':>10} {'Cur':>5} {'Images':>7}")
    print(f"  {'-'*66}")
    for filepath, result, report in zip(files, results, reports):
        if isinstance(result, NotFound):
            print(f"  {filepath.name[:30]:<30} {'-':<10}")
            continue
        print(f"  {filepath.name[:30]:<30} {report.method:<10} {result.price[:10]:>10} "
              f"{result.price_currency[:5]:>5} {len(result.image_urls):>7}")

    print(f"\n  Wall clock: {wall_clock:.2f}s")
    print(f"\n{'='*70}")


async def main(data_dir: Path = DATA_DIR, output: Path = OUTPUT_FILE) -> None:
    t_wall_start = time.monotonic()
    files, results, reports, failures = await process_all(data_dir)
    wall_clock = time.monotonic() - t_wall_start

    written = write_products(output, files, results, reports)
    logger.info(f"Wrote {written} products to {output}")

    print_report(files, results, reports, failures, wall_clock)


def _parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Extract product records from saved HTML pages.")
    ap.add_argument("data_dir", nargs="?", type=Path, default=DATA_DIR, help="directory of *.html pages")
    ap.add_argument("-o", "--output", type=Path, default=OUTPUT_FILE, help="where to write the JSON records")
    return ap.parse_args()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = _parse_args()
    asyncio.run(main(args.data_dir, args.output))
