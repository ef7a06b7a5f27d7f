"""BEACON v1.0 — CLI entry point."""

import argparse
import logging

from beacon import analyze, generate_report

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Recovery analytics report")
    parser.add_argument("history", nargs="?", default="sample_history.json",
                        help="JSON history export (default: sample_history.json)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    result = analyze(args.history)
    print(generate_report(result))
