#!/usr/bin/env python3
"""
Run one declutter pass over an events file.

Ranks the events by score, resolves the visible set for a single viewport
with the Web Mercator projector, and writes the resolution result as JSON.

All unspecified options read from config.json under the "declutter" section.

Input:
    - JSON file holding a list of event records, or {"events": [...]}

Output:
    - ResolutionResult as JSON (stdout, or --output)

Usage:
    python scripts/run_declutter.py --events data/events.json --bounds 40.6 -74.1 40.9 -73.8 --zoom 11
    python scripts/run_declutter.py --events data/events.json --bounds -60 -180 75 180 --zoom 3 --cluster
    python scripts/run_declutter.py --events data/events.json --bounds 40.6 -74.1 40.9 -73.8 --zoom 11 --output out.json
"""

import argparse
import json
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.logging.logger import get_logger
from declutter import (
    DeclutterPipeline,
    DeclutterSettings,
    Event,
    EventValidationError,
    GeoBounds,
    Viewport,
    WebMercatorProjector,
    apply_ranks,
)

logger = get_logger("run_declutter")


def load_events(path: Path):
    """Load and validate event records from a JSON file."""
    with open(path, "r") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("events", [])
    if not isinstance(data, list):
        raise EventValidationError("events", f"expected a list, got {type(data).__name__}")

    events = []
    seen = set()
    for record in data:
        event = Event.from_dict(record)
        if event.id in seen:
            raise EventValidationError("id", f"duplicate id {event.id!r}")
        seen.add(event.id)
        events.append(event)
    return events


def main():
    parser = argparse.ArgumentParser(
        description="Resolve the visible marker set for one map viewport"
    )
    parser.add_argument(
        "--events",
        required=True,
        help="Events JSON file"
    )
    parser.add_argument(
        "--bounds",
        nargs=4,
        type=float,
        required=True,
        metavar=("SOUTH", "WEST", "NORTH", "EAST"),
        help="Viewport bounds in degrees"
    )
    parser.add_argument(
        "--zoom",
        type=float,
        required=True,
        help="Viewport zoom level"
    )
    parser.add_argument(
        "--budget",
        type=int,
        help="Visible budget (default: declutter.visible_budget)"
    )
    parser.add_argument(
        "--cluster",
        action="store_true",
        help="Collapse dense grid cells into clusters"
    )
    parser.add_argument(
        "--output",
        help="Write the result here instead of stdout"
    )

    args = parser.parse_args()

    settings = DeclutterSettings.from_config()
    budget = settings.effective_budget if args.budget is None else settings.clamp_budget(args.budget)

    try:
        events = load_events(Path(args.events))
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load events: {e}")
        sys.exit(1)

    south, west, north, east = args.bounds
    viewport = Viewport(GeoBounds(south=south, west=west, north=north, east=east), args.zoom)

    start_time = time.time()
    apply_ranks(events)
    pipeline = DeclutterPipeline(WebMercatorProjector(), settings)
    result = pipeline.run(events, viewport, budget=budget, cluster=args.cluster or None)
    elapsed = time.time() - start_time

    logger.info(
        f"Resolved {len(events)} events at zoom {args.zoom}: "
        f"{len(result.visible)} visible, {len(result.hidden)} hidden, "
        f"{len(result.clusters)} clusters, {len(result.excluded)} excluded "
        f"({elapsed * 1000:.1f}ms)"
    )

    payload = json.dumps(result.to_dict(), indent=2)
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            f.write(payload)
        logger.info(f"Result written to {output_path}")
    else:
        print(payload)


if __name__ == "__main__":
    main()
