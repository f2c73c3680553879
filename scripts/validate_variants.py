#!/usr/bin/env python3
"""Run both FastBCS variants over random inputs and report agreement.

Every case is searched with cold column sums (FastBCS) and incremental
column sums (FastBCS2) with cache verification on.  Any difference in
permutation or tau-path is a bug.

Usage:
    python scripts/validate_variants.py [--cases 200] [--max-n 120] [--seed 0]
"""
import sys, os, time
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import argparse

import numpy as np

from taupath import DEFAULT_SETTINGS, fastbcs


def make_case(rng, max_n):
    """Random (x, y) pair; half the cases draw from a small integer range."""
    n = int(rng.integers(1, max_n + 1))
    if rng.random() < 0.5:
        k = int(rng.integers(2, 6))
        return "ties", rng.integers(0, k, n).astype(float), \
            rng.integers(0, k, n).astype(float)
    x = rng.normal(size=n)
    rho = rng.uniform(-1, 1)
    return "continuous", x, rho * x + rng.normal(size=n)


def main():
    p = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    p.add_argument("--cases", type=int, default=200)
    p.add_argument("--max-n", type=int, default=120)
    p.add_argument("--seed", type=int, default=0)
    args = p.parse_args()

    settings = DEFAULT_SETTINGS.replace({"engine.verify_cache": True},
                                        name="validate")
    rng = np.random.default_rng(args.seed)

    print(f"Validating {args.cases} random cases (N ≤ {args.max_n}) ...")
    print("=" * 70)

    fail = []
    by_kind = {}
    timing = {"recompute": 0.0, "incremental": 0.0}
    for i in range(args.cases):
        kind, x, y = make_case(rng, args.max_n)
        if kind not in by_kind:
            by_kind[kind] = {"ok": 0, "fail": 0, "corrections": 0}

        cold = fastbcs(x, y, variant="FastBCS", settings=settings)
        warm = fastbcs(x, y, variant="FastBCS2", settings=settings)
        timing["recompute"] += cold.trace.elapsed_s
        timing["incremental"] += warm.trace.elapsed_s

        same = cold.same_as(warm)
        marker = "✓" if same else "✗"
        if not same or warm.trace.n_corrections:
            print(f"  {marker} case {i:4d}  N={len(x):>4d}  [{kind}]  "
                  f"corrections={warm.trace.n_corrections}")

        by_kind[kind]["corrections"] += warm.trace.n_corrections
        if same:
            by_kind[kind]["ok"] += 1
        else:
            by_kind[kind]["fail"] += 1
            fail.append((i, kind, len(x)))

    print()
    print("=" * 70)
    print(f"AGREED:   {args.cases - len(fail)}/{args.cases}")
    print(f"DIFFERED: {len(fail)}")
    print()

    for kind in sorted(by_kind):
        d = by_kind[kind]
        print(f"  {kind:12s}  ok={d['ok']:4d}  fail={d['fail']:3d}  "
              f"corrections={d['corrections']:4d}")
    print()
    for mode, secs in timing.items():
        print(f"  {mode:12s}  {secs * 1000:9.1f} ms total")

    if fail:
        print()
        print("DIFFERING cases (re-run with the same --seed):")
        for i, kind, n in fail:
            print(f"  case {i} [{kind}] N={n}")
        return 1
    return 0


if __name__ == "__main__":
    t0 = time.perf_counter()
    code = main()
    print(f"\nDone in {time.perf_counter() - t0:.1f} s")
    sys.exit(code)
