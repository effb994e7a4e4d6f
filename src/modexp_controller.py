"""
Modular exponentiation in the Montgomery domain on top of a MontgomeryBackend.
"""

from dataclasses import dataclass
from typing import Optional

from accelerator_errors import PreconditionError
from bigint_words import check_width
from montgomery_backends import MontgomeryBackend

MAX_EXPONENT_BITS = 32
NPRIME_MODULUS = 1 << 32


@dataclass(frozen=True)
class MontgomeryParams:
    """
    Per-modulus constants, derived once and reused for the modulus's lifetime.

    Attributes:
        n: The odd modulus
        n_bits: Width defining R = 2^n_bits
        r2_mod_n: R^2 mod N, used to enter the Montgomery domain
        n_prime: -N^-1 mod 2^32 (only meaningful to word-serial reductions)
    """
    n: int
    n_bits: int
    r2_mod_n: int
    n_prime: int


def _check_modulus(n: int, n_bits: int) -> None:
    check_width(n_bits)
    if n < 1 or n >= 1 << n_bits:
        raise PreconditionError(f"Modulus must satisfy 1 <= N < 2^{n_bits}")
    if n % 2 == 0:
        raise PreconditionError("Montgomery arithmetic requires an odd modulus")


def derive_params(n: int, n_bits: int) -> MontgomeryParams:
    """
    Compute R^2 mod N and n' for a modulus.

    Args:
        n: Odd modulus below 2^n_bits
        n_bits: Accelerator width

    Returns:
        The MontgomeryParams for this modulus

    Raises:
        PreconditionError: If the modulus is even or out of range, or the width is invalid
    """
    _check_modulus(n, n_bits)
    inverse = pow(n, -1, NPRIME_MODULUS)
    return MontgomeryParams(
        n=n,
        n_bits=n_bits,
        r2_mod_n=pow(2, 2 * n_bits, n),
        n_prime=(-inverse) % NPRIME_MODULUS,
    )


def product_count(exponent: int, bit_count: int) -> int:
    """Montgomery products per exponentiation: two conversions in, one out, one square per bit."""
    return 3 + bit_count + bin(exponent).count("1")


@dataclass
class ExponentiationContext:
    """
    Working state of one exponentiation.

    Attributes:
        base: The base (ordinary residue)
        exponent: Scalar exponent
        bit_count: Number of exponent bits scanned
        x: Running result in Montgomery form
        a: Running power of the base in Montgomery form
    """
    base: int
    exponent: int
    bit_count: int
    x: int = 0
    a: int = 0


class ModExpController:
    """
    LSB-first square-and-multiply exponentiation computed entirely in the Montgomery domain.

    The squaring runs on every bit so the number of products depends only on bit_count
    and the exponent's popcount. This does not make execution constant-time: the
    conditional multiply and the engine's own conditional additions still depend on data.
    """

    def __init__(self, backend: MontgomeryBackend, verbose: bool = False):
        self.backend = backend
        self.verbose = verbose
        self.last_context: Optional[ExponentiationContext] = None

    def exponentiate(self, base: int, n: int, r2_mod_n: int, n_prime: int, exponent: int,
                     bit_count: int) -> int:
        """
        Compute base^exponent mod N.

        Args:
            base: Base, 0 <= base < N
            n: Odd modulus below R
            r2_mod_n: R^2 mod N for this backend's width
            n_prime: -N^-1 mod 2^32, passed through to the backend
            exponent: Scalar exponent below 2^bit_count
            bit_count: Exponent bits to scan (0..32)

        Returns:
            base^exponent mod N

        Raises:
            PreconditionError: If any argument violates the preconditions above
        """
        self._check(base, n, r2_mod_n, exponent, bit_count)
        mp = self.backend.product

        ctx = ExponentiationContext(base=base, exponent=exponent, bit_count=bit_count)
        self.last_context = ctx

        ctx.x = mp(1, r2_mod_n, n, n_prime)
        ctx.a = mp(base, r2_mod_n, n, n_prime)
        for bit in range(bit_count):
            if (exponent >> bit) & 1:
                ctx.x = mp(ctx.x, ctx.a, n, n_prime)
            ctx.a = mp(ctx.a, ctx.a, n, n_prime)
            if self.verbose:
                print(f"[DEBUG] bit {bit}: x={ctx.x:#x} a={ctx.a:#x}")

        return mp(ctx.x, 1, n, n_prime)

    def exponentiate_with(self, params: MontgomeryParams, base: int, exponent: int, bit_count: int) -> int:
        """Same as exponentiate() but taking the derived parameters of the modulus."""
        if params.n_bits != self.backend.n_bits:
            raise PreconditionError(
                f"Parameters derived for {params.n_bits} bits, backend is {self.backend.n_bits} bits")
        return self.exponentiate(base, params.n, params.r2_mod_n, params.n_prime, exponent, bit_count)

    def _check(self, base: int, n: int, r2_mod_n: int, exponent: int, bit_count: int) -> None:
        _check_modulus(n, self.backend.n_bits)
        if not 0 <= base < n:
            raise PreconditionError("Base must satisfy 0 <= base < N")
        if not 0 <= r2_mod_n < n:
            raise PreconditionError("R^2 mod N must be reduced below N")
        if not 0 <= bit_count <= MAX_EXPONENT_BITS:
            raise PreconditionError(f"Exponent bit count must be between 0 and {MAX_EXPONENT_BITS}")
        if not 0 <= exponent < 1 << bit_count:
            raise PreconditionError(f"Exponent {exponent} does not fit in {bit_count} bits")
