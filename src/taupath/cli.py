"""Command line entry point.

Usage::

    taupath FastBCS2 1,2,3,4 4,3,2,1
    taupath FastBCS 1,2,3,4 1,1,3,4 --tau
    python -m taupath fastbcs2 -- -1,0,1 1,0,-1

Prints the FastBCS permutation as a comma-separated list.  Vectors with
leading negative numbers must follow ``--``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Sequence

from .errors import TauPathError
from .fastbcs import fastbcs
from .settings import DEFAULT_SETTINGS, resolve_variant

__all__ = ["parse_vector", "parse_args", "main"]


def parse_vector(text: str) -> List[float]:
    """Parse ``"1,2.5,3"`` into floats.  Raises ``ValueError``."""
    parts = [p.strip() for p in text.split(",")]
    if not parts or any(p == "" for p in parts):
        raise ValueError(f"malformed vector {text!r}")
    return [float(p) for p in parts]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="taupath",
        description="Order paired observations with Fast Backward "
                    "Conditional Search and print the permutation.",
        epilog="e.g. taupath FastBCS2 1,2,3,4 4,3,2,1")
    p.add_argument("variant",
                   help="FastBCS (recompute column sums) or FastBCS2 "
                        "(incremental column sums).")
    p.add_argument("x", help="Comma-separated x values.")
    p.add_argument("y", help="Comma-separated y values.")
    p.add_argument("--parallel", action="store_true",
                   help="Build the concordance matrix on a thread pool.")
    p.add_argument("--tau", action="store_true",
                   help="Also print the tau-path on a second line.")
    p.add_argument("-v", "--verbose", action="count", default=0,
                   help="Log progress to stderr (-vv for every step).")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose > 1 else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )

    try:
        variant = resolve_variant(args.variant)
        x = parse_vector(args.x)
        y = parse_vector(args.y)
    except ValueError as exc:
        print(f"taupath: {exc}", file=sys.stderr)
        return 1
    if len(x) != len(y):
        print("taupath: please provide equal-length vectors "
              f"(got {len(x)} and {len(y)})", file=sys.stderr)
        return 1

    try:
        result = fastbcs(x, y, variant=variant, parallel=args.parallel,
                         settings=DEFAULT_SETTINGS)
    except (TauPathError, ValueError) as exc:
        print(f"taupath: {exc}", file=sys.stderr)
        return 1

    print(",".join(str(i) for i in result.permutation.tolist()))
    if args.tau:
        print(",".join(f"{t:.6g}" for t in result.tau_path.tolist()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
