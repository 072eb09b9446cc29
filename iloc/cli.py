#!/usr/bin/env python3
"""
CLI entry point for the iloc indoor-positioning toolkit.

Defines the following commands:
  iloc [--preset default|responsive] COMMAND ...

  iloc save SITE LABEL <scan_file> [--x X --y Y] [--fresh-ms MS]
  iloc list SITE
  iloc delete SITE ID
  iloc clear SITE
  iloc predict SITE <scan_file>
  iloc locate SITE <scan_file> [--algorithm NAME]
  iloc track SITE <scan_file> [--interval S] [--iterations N] [--pdr EVENTS] [--stride default|short]
  iloc replay <events_file> [--step-length M] [--stride default|short]
  iloc serve SITE [--port 8000]
  iloc version
"""

import sys
import asyncio
from dataclasses import replace
from argparse import ArgumentParser, Namespace
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version as _get_version

import uvicorn
from rich.console import Console
from rich.table import Table

from iloc.utils.log import get_logger, set_verbosity
from iloc.storage.dao import FingerprintDAO, site_db_path
from iloc.server import create_app
from iloc.parsers.scan import (
    FileScanSource,
    ScanFileError,
    read_scan,
    read_sensor_events,
    replay_events,
)
from iloc.analysis.config import LocalizationConfig, PdrConfig
from iloc.analysis.engine import LocalizationEngine
from iloc.analysis.pdr import PdrEngine
from iloc.analysis.strategies import Algorithm
from iloc.analysis.tracker import PredictionTracker

logger = get_logger(__name__)
console = Console()


LOCALIZATION_PRESETS = {
    "default": LocalizationConfig.default,
    "responsive": LocalizationConfig.responsive,
}
STRIDE_PRESETS = {
    "default": PdrConfig.default,
    "short": PdrConfig.short_stride,
}


def _engine(site: str, cfg: LocalizationConfig | None = None) -> LocalizationEngine:
    return LocalizationEngine(FingerprintDAO(site_db_path(site)), cfg or LocalizationConfig.default())


def save(site: str, label: str, scan_file: str, x: float | None, y: float | None, cfg: LocalizationConfig) -> None:
    """
    Record a fingerprint for LABEL from a scan dump.

    Parameters
    ----------
    site
        Site name, which dictates the SQLite database file name.
    label
        Location label.
    scan_file
        JSON scan dump.
    x, y
        Optional calibration coordinate in metres.
    cfg
        Matching config; its freshness threshold is applied to the dump.
    """
    logger.info("Save: site=%s, label=%s, scan=%s", site, label, scan_file)
    if not label.strip():
        logger.error("Location label required")
        sys.exit(1)
    if (x is None) != (y is None):
        logger.error("Give both --x and --y, or neither")
        sys.exit(1)
    readings = read_scan(scan_file, cfg.fresh_threshold_ms)
    if not readings:
        logger.error("No fresh readings in %s; run a scan first", scan_file)
        sys.exit(1)
    _engine(site, cfg).save_fingerprint(label, readings, x, y)


def list_fingerprints(site: str) -> None:
    """
    Print the stored fingerprints, most recent first.
    """
    fingerprints = _engine(site).fingerprints()
    table = Table(title=f"Fingerprints ({site})")
    table.add_column("id", justify="right")
    table.add_column("location")
    table.add_column("saved")
    table.add_column("APs", justify="right")
    table.add_column("x", justify="right")
    table.add_column("y", justify="right")
    for fp in fingerprints:
        table.add_row(
            str(fp.id),
            fp.location_name,
            datetime.fromtimestamp(fp.timestamp / 1000).isoformat(timespec="seconds"),
            str(len(fp.readings)),
            "" if fp.x_meters is None else f"{fp.x_meters:.2f}",
            "" if fp.y_meters is None else f"{fp.y_meters:.2f}",
        )
    console.print(table)


def delete(site: str, fingerprint_id: int) -> None:
    """
    Remove one fingerprint by id.
    """
    if not _engine(site).delete_fingerprint(fingerprint_id):
        logger.error("No fingerprint with id %d", fingerprint_id)
        sys.exit(1)


def clear(site: str) -> None:
    """
    Remove every fingerprint of the site.
    """
    _engine(site).clear()


def predict(site: str, scan_file: str, cfg: LocalizationConfig) -> None:
    """
    Label-only prediction for a scan dump.
    """
    readings = read_scan(scan_file, cfg.fresh_threshold_ms)
    if not readings:
        console.print("Prediction: unknown (no fresh Wi-Fi scan available)")
        return
    prediction = _engine(site, cfg).predict(readings)
    if prediction is None:
        console.print("Prediction: unknown (no matching fingerprints)")
        return
    console.print(
        f"Prediction: {prediction.location_name} "
        f"(score {prediction.score:.1f} with {prediction.matched_count} matching APs)"
    )


def locate(site: str, scan_file: str, algorithm: str, cfg: LocalizationConfig) -> None:
    """
    Coordinate estimate for a scan dump with the chosen algorithm.
    """
    engine = _engine(site, cfg)
    engine.set_algorithm(algorithm)
    position = engine.update_position(read_scan(scan_file, cfg.fresh_threshold_ms))
    if position is None:
        console.print("Position: unknown (no calibrated fingerprints match)")
        return
    console.print(
        f"Position ({engine.algorithm.value}): ({position.x:.2f}, {position.y:.2f}) "
        f"near {position.location_name}, confidence {position.confidence:.1f}"
    )


def track(
    site: str,
    scan_file: str,
    interval: float | None,
    iterations: int | None,
    pdr_events: str | None,
    cfg: LocalizationConfig,
    pdr_cfg: PdrConfig,
) -> None:
    """
    Continuously predict from a scan dump that another process keeps
    rewriting. With --pdr, recorded sensor events are replayed first and
    predictions then anchor the dead-reckoning track.
    """
    engine = _engine(site, cfg)
    interval = cfg.prediction_interval_s if interval is None else interval
    logger.info("Track: site=%s, scan=%s, every %.1fs", site, scan_file, interval)
    pdr = None
    if pdr_events:
        pdr = PdrEngine(pdr_cfg)
        pdr.start()
        n = replay_events(pdr, read_sensor_events(pdr_events))
        logger.info("Replayed %d sensor events, PDR at (%.2f, %.2f)", n, pdr.position.x, pdr.position.y)

    tracker = PredictionTracker(
        engine,
        FileScanSource(scan_file, engine.cfg.fresh_threshold_ms),
        pdr=pdr,
        interval_s=interval,
        max_iterations=iterations,
    )
    try:
        asyncio.run(tracker.run())
    except KeyboardInterrupt:
        logger.info("Tracking interrupted after %d iterations", tracker.iterations)


def replay(events_file: str, step_length: float | None, pdr_cfg: PdrConfig) -> None:
    """
    Replay a sensor event log through the dead-reckoning engine and print
    the final position and trail.
    """
    pdr = PdrEngine(pdr_cfg)
    if step_length is not None:
        pdr.set_step_length(step_length)
    pdr.start()
    n = replay_events(pdr, read_sensor_events(events_file))
    pos = pdr.position
    console.print(f"Replayed {n} events; position ({pos.x:.2f}, {pos.y:.2f}), heading {pdr.heading:.3f} rad")
    for i, p in enumerate(pdr.trail):
        console.print(f"  {i:2d}: ({p.x:.2f}, {p.y:.2f})")


def serve(site: str, port: int, cfg: LocalizationConfig | None = None) -> None:
    """
    Spin up FastAPI+Uvicorn to serve the positioning API.

    Parameters
    ----------
    site
        Site name, which dictates the SQLite database file name.
    port
        Port on which to serve HTTP.
    cfg
        Matching config shared by every request.
    """
    logger.info("Serve: site=%s, port=%d", site, port)
    app = create_app(site, cfg=cfg)
    uvicorn.run(app, host="127.0.0.1", port=port)

def version() -> None:
    """
    Print the installed iloc package version.
    """
    try:
        ver = _get_version("iloc")
    except PackageNotFoundError:
        ver = "unknown"
    logger.info("iloc version %s", ver)


def parse_args(argv: list[str] | None = None) -> Namespace:
    """
    Parse command-line arguments and return the populated namespace.
    """
    parser = ArgumentParser(prog="iloc")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    parser.add_argument(
        "--preset", choices=sorted(LOCALIZATION_PRESETS), default="default",
        help="Matching and freshness preset.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # iloc save
    p = subparsers.add_parser("save", help="Save a fingerprint from a scan dump.")
    p.add_argument("site", type=str, help="Site name.")
    p.add_argument("label", type=str, help="Location label.")
    p.add_argument("scan_file", type=str, help="JSON scan dump.")
    p.add_argument("--x", type=float, help="Calibration x coordinate (m).")
    p.add_argument("--y", type=float, help="Calibration y coordinate (m).")
    p.add_argument(
        "--fresh-ms", type=int, help="Max reading age (ms); defaults to the preset's threshold."
    )

    # iloc list
    p = subparsers.add_parser("list", help="List stored fingerprints.")
    p.add_argument("site", type=str, help="Site name.")

    # iloc delete
    p = subparsers.add_parser("delete", help="Delete a fingerprint.")
    p.add_argument("site", type=str, help="Site name.")
    p.add_argument("id", type=int, help="Fingerprint id.")

    # iloc clear
    p = subparsers.add_parser("clear", help="Delete all fingerprints.")
    p.add_argument("site", type=str, help="Site name.")

    # iloc predict
    p = subparsers.add_parser("predict", help="Predict the location label of a scan.")
    p.add_argument("site", type=str, help="Site name.")
    p.add_argument("scan_file", type=str, help="JSON scan dump.")
    p.add_argument(
        "--fresh-ms", type=int, help="Max reading age (ms); defaults to the preset's threshold."
    )

    # iloc locate
    p = subparsers.add_parser("locate", help="Estimate the coordinate of a scan.")
    p.add_argument("site", type=str, help="Site name.")
    p.add_argument("scan_file", type=str, help="JSON scan dump.")
    p.add_argument(
        "--algorithm", type=str, default=Algorithm.EUCLIDEAN.value,
        help="EUCLIDEAN, WKNN or COSINE.",
    )
    p.add_argument(
        "--fresh-ms", type=int, help="Max reading age (ms); defaults to the preset's threshold."
    )

    # iloc track
    p = subparsers.add_parser("track", help="Continuously predict from a scan dump.")
    p.add_argument("site", type=str, help="Site name.")
    p.add_argument("scan_file", type=str, help="JSON scan dump, rewritten by the scanner.")
    p.add_argument(
        "--interval", type=float, help="Seconds between predictions; defaults to the preset's.",
    )
    p.add_argument("--iterations", type=int, help="Stop after N predictions.")
    p.add_argument("--pdr", dest="pdr_events", type=str, help="Sensor event log (JSON lines).")
    p.add_argument(
        "--stride", choices=sorted(STRIDE_PRESETS), default="default", help="Stride preset for --pdr."
    )
    p.add_argument(
        "--fresh-ms", type=int, help="Max reading age (ms); defaults to the preset's threshold."
    )

    # iloc replay
    p = subparsers.add_parser("replay", help="Replay sensor events through PDR.")
    p.add_argument("events_file", type=str, help="Sensor event log (JSON lines).")
    p.add_argument("--step-length", type=float, help="Stride length (m), overrides --stride.")
    p.add_argument(
        "--stride", choices=sorted(STRIDE_PRESETS), default="default", help="Stride preset."
    )

    # iloc serve
    p = subparsers.add_parser("serve", help="Serve via FastAPI + Uvicorn.")
    p.add_argument("site", type=str, help="Site name.")
    p.add_argument(
        "--port", type=int, default=8000, help="Port number to serve on."
    )

    # iloc version
    subparsers.add_parser("version", help="Show iloc version and exit.")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """
    Entry point: dispatch to the selected subcommand.
    """
    args = parse_args(argv)
    set_verbosity(args.verbose)
    cfg = LOCALIZATION_PRESETS[args.preset]()
    if getattr(args, "fresh_ms", None) is not None:
        cfg = replace(cfg, fresh_threshold_ms=args.fresh_ms)
    pdr_cfg = STRIDE_PRESETS[getattr(args, "stride", "default")]()
    try:
        match args.command:
            case "save":
                save(args.site, args.label, args.scan_file, args.x, args.y, cfg)
            case "list":
                list_fingerprints(args.site)
            case "delete":
                delete(args.site, args.id)
            case "clear":
                clear(args.site)
            case "predict":
                predict(args.site, args.scan_file, cfg)
            case "locate":
                locate(args.site, args.scan_file, args.algorithm, cfg)
            case "track":
                track(args.site, args.scan_file, args.interval, args.iterations, args.pdr_events, cfg, pdr_cfg)
            case "replay":
                replay(args.events_file, args.step_length, pdr_cfg)
            case "serve":
                serve(args.site, args.port, cfg)
            case "version":
                version()
            case _:
                sys.exit(1)
    except ScanFileError as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
