from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from invitation_routing.demo_runner import run_packs
from invitation_routing.observability import configure_logging

DEFAULT_PACKS_DIR = Path(__file__).resolve().parent / "scenario_packs"


def write_report(*, output_path: str | Path, report: dict) -> Path:
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(report, indent=2) + "\n", encoding="utf-8")
    return out


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay connection routing scenario packs on a virtual clock.")
    parser.add_argument(
        "--packs-dir",
        default=str(DEFAULT_PACKS_DIR),
        help="Directory of *.json scenario packs.",
    )
    parser.add_argument("--output", default=None, help="Write the JSON report here instead of stdout.")
    parser.add_argument("--log-level", default="WARNING", help="Routing core log level (JSON lines on stderr).")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logger = configure_logging(args.log_level.upper())
    report = run_packs(Path(args.packs_dir), logger=logging.getLogger(f"{logger.name}.demo"))
    if args.output:
        write_report(output_path=args.output, report=report)
    else:
        print(json.dumps(report, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
