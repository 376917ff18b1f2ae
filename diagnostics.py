"""
Diagnostic: show what extraction sources each saved page carries.
Reports every JSON-LD payload's shape, the meta tags found, whether
ShopifyAnalytics is present, and which method produced the record.
"""

import json
import sys
from pathlib import Path

from extractor import classify, extract_with_report
from models import NotFound
from parser import parse_html

DATA_DIR = Path(__file__).parent / "data"
META_KEYS = ["title", "price:amount", "price:currency", "image", "availability"]


def diagnose_file(filepath: Path) -> dict:
    html = filepath.read_text(encoding="utf-8")
    sources = parse_html(html)

    payloads: list[str] = []
    for text in sources.json_ld:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            payloads.append("parse error")
            continue
        items = data if isinstance(data, list) else [data]
        payloads.append(", ".join(classify(item).kind.value for item in items) or "empty list")

    result, report = extract_with_report(sources)

    return {
        "file": filepath.name,
        "json_ld": payloads,
        "meta": [k for k in META_KEYS if sources.meta.get(k)],
        "analytics": sources.analytics is not None,
        "method": report.method or "none",
        "found": not isinstance(result, NotFound),
        "name": "" if isinstance(result, NotFound) else result.name,
    }


def main():
    data_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else DATA_DIR
    html_files = sorted(data_dir.glob("*.html"))
    print(f"Diagnosing {len(html_files)} files\n")

    all_reports = []
    for filepath in html_files:
        report = diagnose_file(filepath)
        all_reports.append(report)

        print(f"{'=' * 70}")
        print(f"  {report['file']}")
        print(f"{'=' * 70}")
        print(f"  JSON-LD payloads: {len(report['json_ld'])}")
        for i, shape in enumerate(report["json_ld"]):
            print(f"    [{i}] {shape}")
        print(f"  Meta tags: {report['meta'] or 'none'}")
        print(f"  ShopifyAnalytics: {'yes' if report['analytics'] else 'no'}")
        if report["found"]:
            print(f"\n  Found via {report['method']}: {report['name']}")
        else:
            print("\n  NOT FOUND")
        print()

    # Summary table
    print(f"\n{'=' * 70}")
    print("SUMMARY")
    print(f"{'=' * 70}")
    print(f"{'File':<30} {'JSON-LD':>8} {'Meta':>6} {'Analytics':>10}  Method")
    print("-" * 70)
    for r in all_reports:
        print(f"{r['file'][:30]:<30} {len(r['json_ld']):>8} {len(r['meta']):>6} "
              f"{'yes' if r['analytics'] else '-':>10}  {r['method']}")


if __name__ == "__main__":
    main()
