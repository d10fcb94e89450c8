# main.py
"""CLI entry point for the Liminal story engine."""

from __future__ import annotations

import argparse

from orchestration.cli_runner import run


def main() -> None:
    """Parse command-line arguments and start a story session."""
    parser = argparse.ArgumentParser()
    parser.add_argument("--seed", default="transit-mystery", help="Story seed")
    parser.add_argument(
        "--offline-only",
        action="store_true",
        help="Use only the deterministic offline provider",
    )
    parser.add_argument("--resume", default=None, help="Session id to resume")
    args = parser.parse_args()
    run(args.seed, offline_only=args.offline_only, resume_id=args.resume)


if __name__ == "__main__":
    main()
