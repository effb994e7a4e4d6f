import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

from accelerator_cli import main
from rsa_keys import RSAKeyPair


def run_cli(*argv):
    out, err = io.StringIO(), io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = main(list(argv))
    return code, out.getvalue(), err.getvalue()


class TestAcceleratorCli(unittest.TestCase):

    def test_modexp_prints_both_paths(self):
        code, out, _ = run_cli('-w', '1024', '--mode', 'collapsed', 'modexp', '-n', '3233', '-b', '42', '-e', '17')
        self.assertEqual(code, 0)
        self.assertIn(f"HW result: {pow(42, 17, 3233)}", out)
        self.assertIn(f"SW result: {pow(42, 17, 3233)}", out)
        self.assertIn(f"R^2 mod N: {pow(2, 2048, 3233):#x}", out)

    def test_modexp_accepts_hex_arguments(self):
        code, out, _ = run_cli('-w', '64', 'modexp', '-n', '0xca1', '-b', '0x2a', '-e', '0x11')
        self.assertEqual(code, 0)
        self.assertIn(f"HW result: {pow(42, 17, 3233)}", out)

    def test_even_modulus_is_an_error(self):
        code, _, err = run_cli('-w', '64', 'modexp', '-n', '3232', '-b', '42', '-e', '17')
        self.assertEqual(code, 1)
        self.assertIn("odd modulus", err)

    def test_timeout_is_an_error(self):
        code, _, err = run_cli('-w', '64', '--max-polls', '5', 'modexp', '-n', '3233', '-b', '42', '-e', '17')
        self.assertEqual(code, 1)
        self.assertIn("HW timeout", err)

    def test_keygen_then_rsa(self):
        with tempfile.TemporaryDirectory() as tmp:
            key_file = os.path.join(tmp, 'key.pem')
            code, out, _ = run_cli('keygen', '-b', '24', '-s', '5', '-o', key_file)
            self.assertEqual(code, 0)
            self.assertIn("saved to", out)
            with open(key_file) as f:
                key_pair = RSAKeyPair.from_pem_private(f.read())
            self.assertEqual(key_pair.public_key.n.bit_length(), 24)

            code, out, _ = run_cli('-w', '64', 'rsa', '-k', key_file, '-m', '42')
            self.assertEqual(code, 0)
            self.assertIn(f"Ciphertext:    {pow(42, key_pair.public_key.e, key_pair.public_key.n)}", out)
            self.assertIn("Decrypted:     42", out)

    def test_profile_writes_csv(self):
        with tempfile.TemporaryDirectory() as tmp:
            csv_file = os.path.join(tmp, 'samples.csv')
            code, out, _ = run_cli('-w', '64', '--mode', 'collapsed', 'profile', '-n', '3233', '-e', '8',
                                   '-c', '6', '-s', '1', '-o', csv_file)
            self.assertEqual(code, 0)
            self.assertIn("cycle delta", out)
            with open(csv_file) as f:
                rows = f.read().splitlines()
        self.assertEqual(rows[0], "base,exponent,products,engine_cycles,engine_additions")
        self.assertEqual(len(rows), 7)

    def test_profile_rejects_wide_exponents(self):
        code, _, err = run_cli('-w', '64', 'profile', '-n', '3233', '-e', '40', '-c', '2')
        self.assertEqual(code, 1)
        self.assertIn("Exponent", err)

    def test_missing_key_file(self):
        code, _, err = run_cli('rsa', '-k', 'no_such_key.pem', '-m', '42')
        self.assertEqual(code, 1)
        self.assertIn("was not found", err)


if __name__ == '__main__':
    unittest.main(verbosity=2)
