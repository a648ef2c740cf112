#!/usr/bin/env python3
"""Simulate a weight ramp on a seeded pool and print supply and prices along the way."""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from weighted_pool import PRECISION, InMemoryCustodian, Pool, StaticRateProvider

MANAGEMENT = "management"
LP = "lp"


class SteppedClock:
    """Clock the simulation advances by hand."""

    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def parse_weights(text: str) -> list[int]:
    """Parse comma separated decimal weights, e.g. "0.1,0.2,0.3,0.4"."""
    weights = [int(float(part) * 10**6) * 10**12 for part in text.split(",")]
    weights[-1] += PRECISION - sum(weights)
    return weights


def build_pool(num_assets: int, amplification: int, balance: int, clock: SteppedClock) -> Pool:
    """Create a pool with equal weights and deposit `balance` of each asset."""
    assets = [f"asset{i}" for i in range(num_assets)]
    weights = [PRECISION // num_assets] * num_assets
    weights[-1] += PRECISION - sum(weights)

    custodian = InMemoryCustodian()
    pool = Pool(
        assets,
        [StaticRateProvider()] * num_assets,
        weights,
        amplification,
        management=MANAGEMENT,
        custodian=custodian,
        clock=clock,
    )
    # the LP holds all shares and absorbs supply changes from the ramp
    pool.set_staking(LP, sender=MANAGEMENT)
    for asset in assets:
        custodian.fund(LP, asset, balance)
    pool.add_liquidity([balance] * num_assets, 0, sender=LP)
    return pool


def main():
    parser = argparse.ArgumentParser(description="Simulate a weight ramp on a seeded pool")
    parser.add_argument("--target", required=True, help="Target weights, e.g. 0.1,0.2,0.3,0.4")
    parser.add_argument("--amp", type=float, default=10.0, help="Starting amplification (default: 10)")
    parser.add_argument("--target-amp", type=float, default=None, help="Target amplification")
    parser.add_argument("--days", type=int, default=7, help="Ramp duration in days (default: 7)")
    parser.add_argument("--steps", type=int, default=7, help="Number of samples (default: 7)")
    parser.add_argument("--balance", type=float, default=100.0, help="Initial balance per asset")
    parser.add_argument("--trade", type=float, default=1.0, help="Trade size for the sampled price")
    args = parser.parse_args()

    target = parse_weights(args.target)
    amplification = int(args.amp * 10**6) * 10**12
    target_amp = amplification if args.target_amp is None else int(args.target_amp * 10**6) * 10**12
    balance = int(args.balance * 10**6) * 10**12
    trade = int(args.trade * 10**6) * 10**12
    duration = args.days * 86_400

    clock = SteppedClock(0)
    pool = build_pool(len(target), amplification, balance, clock)
    pool.set_ramp(target_amp, target, duration, sender=MANAGEMENT)

    last = len(target) - 1
    print(f"{'time':>10} {'supply':>24} {'weights':>40} {'price 0->' + str(last):>16}")
    for step in range(args.steps + 1):
        clock.now = duration * step // args.steps
        pool.update_weights()
        weights = ",".join(f"{w / PRECISION:.4f}" for w in pool.ledger.weights)
        price = pool.get_dy(0, last, trade) / trade
        print(f"{clock.now:>10} {pool.supply / PRECISION:>24.6f} {weights:>40} {price:>16.8f}")


if __name__ == "__main__":
    main()
