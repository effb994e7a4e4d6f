import random
import unittest

from bigint_words import from_words, to_words
from reference_multiplier import modexp_reference, modexp_reference_int, modmul_reference


class TestReferenceMultiplier(unittest.TestCase):

    def setUp(self):
        self.rng = random.Random(7)

    def test_modmul_matches_python_integers(self):
        for n_words in (1, 2, 32):
            with self.subTest(n_words=n_words):
                for _ in range(10):
                    n = self.rng.getrandbits(32 * n_words) | 1
                    a, b = self.rng.randrange(n), self.rng.randrange(n)
                    result = modmul_reference(to_words(a, n_words), to_words(b, n_words), to_words(n, n_words))
                    self.assertEqual(from_words(result), (a * b) % n)

    def test_modmul_reduces_operands_wider_than_the_modulus(self):
        # Full-width operands against a tiny modulus
        a, b, n = (1 << 64) - 1, (1 << 63) + 5, 3233
        result = modmul_reference(to_words(a, 2), to_words(b, 2), to_words(n, 2))
        self.assertEqual(from_words(result), (a * b) % n)

    def test_modulus_one_gives_zero(self):
        self.assertEqual(modmul_reference([5], [7], [1]), [0])

    def test_zero_modulus_is_rejected(self):
        with self.assertRaises(ValueError):
            modmul_reference([5, 0], [7, 0], [0, 0])

    def test_modexp_matches_pow(self):
        for base, exponent, bits in ((42, 17, 5), (2790, 2753, 12), (0, 17, 5), (42, 0, 0)):
            with self.subTest(base=base, exponent=exponent):
                self.assertEqual(modexp_reference_int(base, exponent, bits, 3233, 64), pow(base, exponent, 3233))

    def test_modexp_on_words_keeps_width(self):
        result = modexp_reference(to_words(42, 32), 17, 5, to_words(3233, 32))
        self.assertEqual(len(result), 32)
        self.assertEqual(from_words(result), pow(42, 17, 3233))


if __name__ == '__main__':
    unittest.main(verbosity=2)
