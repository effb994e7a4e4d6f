"""
Interchangeable strategies for computing one Montgomery product.

The exponentiation controller only sees MontgomeryBackend.product(); whether that runs
on the accelerator through its registers or as plain integer arithmetic is decided by
which backend it was handed. Both implement the same bit-serial algorithm, so they must
agree bit for bit.
"""

from abc import ABC, abstractmethod

from accelerator_driver import AcceleratorDriver
from bigint_words import check_width, from_words, to_words


def montgomery_product(a: int, b: int, n: int, n_bits: int) -> int:
    """
    Bit-serial Montgomery product A * B * 2^-n_bits mod N on Python integers.

    Args:
        a, b: Operands, both < N
        n: Odd modulus below 2^n_bits
        n_bits: Width defining the radix R = 2^n_bits

    Returns:
        A * B * R^-1 mod N
    """
    t = 0
    for i in range(n_bits):
        if (b >> i) & 1:
            t += a
        if t & 1:
            t += n
        t >>= 1
    if t >= n:
        t -= n
    return t


class MontgomeryBackend(ABC):
    """
    Common call contract for a Montgomery product of fixed width.

    Attributes:
        n_bits: Width defining the radix R = 2^n_bits
        products: Number of products computed so far
    """

    def __init__(self, n_bits: int):
        check_width(n_bits)
        self.n_bits = n_bits
        self.products = 0

    @abstractmethod
    def product(self, a: int, b: int, n: int, n_prime: int = 0) -> int:
        """
        Computes A * B * R^-1 mod N.

        Args:
            a, b: Operands, both < N
            n: Odd modulus below R
            n_prime: -N^-1 mod 2^32, forwarded where the strategy has a place for it

        Returns:
            The Montgomery product as an integer
        """
        pass


class SoftwareBackend(MontgomeryBackend):
    """Montgomery products computed entirely in software."""

    def product(self, a: int, b: int, n: int, n_prime: int = 0) -> int:
        self.products += 1
        return montgomery_product(a, b, n, self.n_bits)


class AcceleratorBackend(MontgomeryBackend):
    """
    Montgomery products computed by the accelerator through its register interface.

    Engine cycle and addition counters are accumulated across products so callers can
    measure a whole exponentiation.
    """

    def __init__(self, driver: AcceleratorDriver):
        super().__init__(driver.n_bits)
        self.driver = driver
        self.cycles = 0
        self.add_count = 0

    def product(self, a: int, b: int, n: int, n_prime: int = 0) -> int:
        n_words = self.driver.n_words
        result = self.driver.operate(to_words(a, n_words), to_words(b, n_words), to_words(n, n_words),
                                     n_prime=n_prime)
        self.products += 1
        self.cycles += self.driver.last_cycles
        self.add_count += self.driver.last_add_count
        return from_words(result)

    def reset_counters(self) -> None:
        self.products = 0
        self.cycles = 0
        self.add_count = 0
