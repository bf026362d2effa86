"""
CLI wrapper for generate_reading_context().

Usage:
    python -m saju.run --birth-date YYYY-MM-DD [--birth-time HH:MM] \
        [--gender m|f] [--date YYYY-MM-DD] [--settings engine.yaml] [--verbose]
"""

import argparse
import json
import logging
from datetime import date
from pathlib import Path

from saju.context import generate_reading_context
from saju.settings import DEFAULT_SETTINGS, load_settings


def main(argv=None):
    parser = argparse.ArgumentParser(description="Compute a four-pillar reading context.")
    parser.add_argument("--birth-date", required=True, dest="birth_date")
    parser.add_argument("--birth-time", dest="birth_time", default=None,
                        help="HH:MM; omit when the birth time is unknown")
    parser.add_argument("--gender", choices=["m", "f", "male", "female"], default=None)
    parser.add_argument("--date", default=None, help="Target date (default: today)")
    parser.add_argument("--settings", type=Path, default=None, help="YAML settings file")
    parser.add_argument("--verbose", action="store_true")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.settings) if args.settings else DEFAULT_SETTINGS
    birth = args.birth_date if args.birth_time is None else f"{args.birth_date} {args.birth_time}"

    context = generate_reading_context(
        birth=birth,
        gender=args.gender,
        target_date=args.date or date.today().isoformat(),
        settings=settings,
    )

    print(json.dumps(context, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
