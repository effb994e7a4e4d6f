"""
Measures how much of an exponentiation's cost depends on secret data.

Squaring on every exponent bit fixes the number of squarings, but the conditional
multiply still adds one full engine latency per set exponent bit, and the engine's
conditional additions vary with the operand values. The helpers here quantify both
effects with the same partition-and-compare-means approach used by timing attacks.
"""

import csv
import random
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from accelerator_driver import AcceleratorConfig
from modexp_controller import ModExpController, derive_params
from montgomery_backends import AcceleratorBackend
from montgomery_engine import EngineMode


@dataclass
class TimingProfile:
    """
    Per-sample measurements of accelerated exponentiations.

    Attributes:
        bases: Base used for each sample
        exponents: Exponent used for each sample
        cycles: Total engine cycles per exponentiation
        add_counts: Total conditional additions actually performed per exponentiation
        products: Montgomery products issued per exponentiation
    """
    bases: np.ndarray
    exponents: np.ndarray
    cycles: np.ndarray
    add_counts: np.ndarray
    products: np.ndarray

    def summary(self) -> dict:
        return {
            'samples': int(self.cycles.size),
            'cycles_mean': float(np.mean(self.cycles)),
            'cycles_std': float(np.std(self.cycles)),
            'adds_mean': float(np.mean(self.add_counts)),
            'adds_std': float(np.std(self.add_counts)),
        }

    def save_csv(self, filename: str) -> None:
        """One row per sample."""
        with open(filename, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(['base', 'exponent', 'products', 'engine_cycles', 'engine_additions'])
            for row in zip(self.bases, self.exponents, self.products, self.cycles, self.add_counts):
                writer.writerow([int(value) for value in row])


def profile_exponentiations(n: int, n_bits: int, bases: Iterable[int], exponents: Iterable[int],
                            bit_count: int, mode: EngineMode = EngineMode.COLLAPSED) -> TimingProfile:
    """
    Run one accelerated exponentiation per (base, exponent) pair and record its cost.

    Collapsed mode reports the same cycle and addition counts as step mode, so it is the
    default here.
    """
    params = derive_params(n, n_bits)
    backend = AcceleratorBackend(AcceleratorConfig(n_bits=n_bits, mode=mode).build_driver())
    controller = ModExpController(backend)

    used_bases, counters = [], []
    for base, exponent in zip(bases, exponents):
        backend.reset_counters()
        controller.exponentiate_with(params, base, exponent, bit_count)
        used_bases.append(base)
        counters.append((exponent, backend.cycles, backend.add_count, backend.products))

    # Bases can be wider than 64 bits, the counters never are
    counts = np.array(counters, dtype=np.int64).reshape(-1, 4)
    return TimingProfile(bases=np.array(used_bases, dtype=object), exponents=counts[:, 0],
                         cycles=counts[:, 1], add_counts=counts[:, 2], products=counts[:, 3])


def mean_difference(values: np.ndarray, mask: np.ndarray) -> float:
    """|mean(values[mask]) - mean(values[~mask])|, or 0 if either side is empty."""
    selected, rest = values[mask], values[~mask]
    if selected.size == 0 or rest.size == 0:
        return 0.0
    return float(abs(np.mean(selected) - np.mean(rest)))


def exponent_bit_leakage(n: int, n_bits: int, bit_count: int, samples: int = 64, base: int = 2,
                         seed: Optional[int] = None, exponents: Optional[Iterable[int]] = None) -> np.ndarray:
    """
    For each exponent bit, the mean cycle difference between exponents with the bit set
    and exponents with it clear. A non-zero entry means that bit leaks through timing.

    Args:
        samples: Number of random exponents drawn when exponents is not given
        exponents: Explicit exponents to measure instead of random ones

    Returns:
        Array of bit_count mean differences, LSB first
    """
    if exponents is None:
        rng = random.Random(seed)
        exponents = [rng.getrandbits(bit_count) for _ in range(samples)]
    else:
        exponents = list(exponents)
    profile = profile_exponentiations(n, n_bits, [base % n] * len(exponents), exponents, bit_count)
    return bit_leakage(profile, bit_count)


def bit_leakage(profile: TimingProfile, bit_count: int) -> np.ndarray:
    """Per exponent bit, mean cycle difference between samples with the bit set and clear."""
    return np.array([mean_difference(profile.cycles, ((profile.exponents >> bit) & 1).astype(bool))
                     for bit in range(bit_count)])
