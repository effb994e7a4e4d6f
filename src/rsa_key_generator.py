import math
import random
from typing import Optional

from accelerator_errors import PreconditionError
from modexp_controller import MAX_EXPONENT_BITS
from rsa_keys import RSAKeyPair


class RSAKeyGenerator:
    """
    Generates small RSA key pairs whose exponents fit the controller's 32-bit scalar
    exponent, so both encryption and decryption can run through the accelerator.

    Args:
        seed: Optional seed for reproducible key material
    """

    def __init__(self, seed: Optional[int] = None):
        self.rng = random.Random(seed)
        self.primes = PrimeGenerator(self.rng)

    def generate_keypair(self, key_length: int = MAX_EXPONENT_BITS, public_exponent: int = 17,
                         max_attempts: int = 1000) -> RSAKeyPair:
        """
        Args:
            key_length: Exact bit length of the modulus (8..32)
            public_exponent: Odd public exponent >= 3

        Raises:
            PreconditionError: If the private exponent could not fit the scalar exponent
            ValueError: If public_exponent is invalid
            RuntimeError: If no suitable pair is found within max_attempts
        """
        if not 8 <= key_length <= MAX_EXPONENT_BITS:
            raise PreconditionError(
                f"Key length must be between 8 and {MAX_EXPONENT_BITS} bits so d fits a scalar exponent")
        if public_exponent < 3 or public_exponent % 2 == 0:
            raise ValueError("Public exponent must be odd and >= 3")

        prime_length = key_length // 2
        for _ in range(max_attempts):
            p = self.primes.generate_prime(prime_length)
            q = self.primes.generate_prime(key_length - prime_length)
            if p == q:
                continue

            n = p * q
            phi = (p - 1) * (q - 1)
            # e must be invertible and smaller than phi(n) to be a sensible exponent
            if n.bit_length() == key_length and public_exponent < phi and math.gcd(phi, public_exponent) == 1:
                d = pow(public_exponent, -1, phi)
                return RSAKeyPair.from_components(p, q, public_exponent, d)
        raise RuntimeError(f"Unable to generate a {key_length}-bit key pair after {max_attempts} attempts")


class PrimeGenerator:
    """Miller-Rabin based prime generation driven by a caller-supplied random source."""

    def __init__(self, rng: random.Random):
        self.rng = rng

    def is_prime(self, n: int, iterations: int = 10) -> bool:
        if n < 2: return False
        if n in (2, 3): return True
        if n % 2 == 0: return False

        r, d = 0, n - 1
        while d % 2 == 0:
            r += 1
            d //= 2

        for _ in range(iterations):
            a = self.rng.randrange(2, n - 1)
            x = pow(a, d, n)
            if x == 1 or x == n - 1:
                continue
            for _ in range(r - 1):
                x = pow(x, 2, n)
                if x == n - 1: break
            else:
                return False
        return True

    def generate_prime(self, bits: int, max_attempts: int = 10000) -> int:
        """
        Random prime with exactly `bits` bits (MSB and LSB forced to 1).

        Raises:
            RuntimeError: If no prime is found within max_attempts
        """
        for _ in range(max_attempts):
            candidate = self.rng.getrandbits(bits) | (1 << bits - 1) | 1
            if self.is_prime(candidate):
                return candidate
        raise RuntimeError(f"Unable to generate a {bits} bits prime after {max_attempts} attempts.")
