"""Validate a fare YAML file and optionally price a sample trip."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Sequence

from app.services.fare_config_service import DEFAULT_FARE_FILE, load_fare_config
from app.services.pricing_errors import (
    ConfigurationInvariantViolation,
    UnknownVehicleError,
)
from app.services.pricing_service import (
    FareCalculator,
    FareQuote,
    QuoteContext,
    pricing_summary,
)

LOGGER = logging.getLogger("check_fare_config")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "config",
        nargs="?",
        type=Path,
        default=DEFAULT_FARE_FILE,
        help="Fare YAML file (defaults to the bundled tables)",
    )
    parser.add_argument("--vehicle", help="Vehicle class to price a sample trip for")
    parser.add_argument("--miles", type=float, default=0.0)
    parser.add_argument("--minutes", type=float, default=0.0)
    parser.add_argument("--at", help="Pickup time, ISO format (local time)")
    parser.add_argument("--origin")
    parser.add_argument("--destination")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_fare_config(args.config)
    except ConfigurationInvariantViolation as exc:
        for issue in exc.issues:
            LOGGER.error("%s", issue)
        return 1
    except OSError as exc:
        LOGGER.error("Cannot read %s: %s", args.config, exc)
        return 1
    LOGGER.info("%s is valid", args.config)

    if not args.vehicle:
        return 0

    calculator = FareCalculator.from_config(config)
    context = QuoteContext(
        trip_at=datetime.fromisoformat(args.at) if args.at else None,
        origin_code=args.origin,
        destination_code=args.destination,
    )
    try:
        result = calculator.quote(args.vehicle, args.miles, args.minutes, context)
    except UnknownVehicleError as exc:
        LOGGER.error("%s", exc)
        return 1

    if isinstance(result, FareQuote):
        payload = {"quote": result.to_dict(), "summary": pricing_summary(result)}
    else:
        payload = {"service_area": result.to_dict()}
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
