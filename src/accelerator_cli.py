import argparse
import random
import sys
from typing import List, Optional

from accelerated_rsa import DualPathVerifier
from accelerator_driver import HW_DONE_TIMEOUT, SUPPORTED_WIDTHS, AcceleratorConfig
from modexp_controller import ModExpController, derive_params
from montgomery_backends import AcceleratorBackend, SoftwareBackend
from montgomery_engine import EngineMode
from rsa_key_generator import RSAKeyGenerator
from rsa_keys import RSAKeyPair
from timing_profile import bit_leakage, profile_exponentiations


def _parse_int(text: str) -> int:
    """Accept decimal or 0x-prefixed hexadecimal."""
    return int(text, 0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Drive the simulated Montgomery accelerator.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument('-w', '--width', type=int, default=SUPPORTED_WIDTHS[0],
                        help=f'Accelerator operand width in bits (default: {SUPPORTED_WIDTHS[0]}).')
    parser.add_argument('--mode', choices=[m.value for m in EngineMode], default=EngineMode.STEP.value,
                        help='Clock the engine state by state, or collapse each product into one call.')
    parser.add_argument('--max-polls', type=int, default=HW_DONE_TIMEOUT,
                        help='Status polls before an operation times out.')
    parser.add_argument('-v', '--verbose', action='store_true', help='Print per-operation diagnostics.')
    subparsers = parser.add_subparsers(dest='command', required=True, help='Available commands')

    # --- 'modexp' command ---
    parser_exp = subparsers.add_parser('modexp', help='Compute base^exponent mod N on both paths.')
    parser_exp.add_argument('-n', '--modulus', type=_parse_int, required=True, help='Odd modulus.')
    parser_exp.add_argument('-b', '--base', type=_parse_int, required=True, help='Base (< modulus).')
    parser_exp.add_argument('-e', '--exponent', type=_parse_int, required=True, help='Exponent (<= 32 bits).')

    # --- 'rsa' command ---
    parser_rsa = subparsers.add_parser('rsa', help='Encrypt/decrypt a message and cross-check both paths.')
    parser_rsa.add_argument('-k', '--key', type=str, required=True, help='PKCS#1 private key (PEM).')
    parser_rsa.add_argument('-m', '--message', type=_parse_int, required=True, help='Plaintext integer.')

    # --- 'keygen' command ---
    parser_gen = subparsers.add_parser('keygen', help='Generate a key pair small enough for scalar exponents.')
    parser_gen.add_argument('-b', '--bits', type=int, default=32, help='Modulus bit length (default: 32).')
    parser_gen.add_argument('-s', '--seed', type=int, default=None, help='Seed for reproducible keys.')
    parser_gen.add_argument('-o', '--out', type=str, required=True, help='Output PEM file.')

    # --- 'profile' command ---
    parser_prof = subparsers.add_parser('profile', help='Measure how exponent bits show up in engine cycles.')
    parser_prof.add_argument('-n', '--modulus', type=_parse_int, required=True, help='Odd modulus.')
    parser_prof.add_argument('-e', '--exponent-bits', type=int, default=16, help='Exponent width (default: 16).')
    parser_prof.add_argument('-c', '--samples', type=int, default=32, help='Random exponentiations (default: 32).')
    parser_prof.add_argument('-s', '--seed', type=int, default=None, help='Seed for bases and exponents.')
    parser_prof.add_argument('-o', '--out', type=str, default=None, help='Optional CSV file for raw samples.')
    return parser


def _config(args: argparse.Namespace) -> AcceleratorConfig:
    return AcceleratorConfig(n_bits=args.width, max_polls=args.max_polls, mode=EngineMode(args.mode),
                             verbose=args.verbose)


def _run_modexp(args: argparse.Namespace) -> None:
    params = derive_params(args.modulus, args.width)
    hw = ModExpController(AcceleratorBackend(_config(args).build_driver()), verbose=args.verbose)
    sw = ModExpController(SoftwareBackend(args.width))
    bit_count = args.exponent.bit_length()

    result_hw = hw.exponentiate_with(params, args.base, args.exponent, bit_count)
    result_sw = sw.exponentiate_with(params, args.base, args.exponent, bit_count)
    print(f"R^2 mod N: {params.r2_mod_n:#x}")
    print(f"n':        {params.n_prime:#010x}")
    print(f"HW result: {result_hw}")
    print(f"SW result: {result_sw}")
    if result_hw != result_sw:
        raise RuntimeError("Accelerated and software results differ")


def _run_rsa(args: argparse.Namespace) -> None:
    with open(args.key, 'r') as f:
        key_pair = RSAKeyPair.from_pem_private(f.read())
    verifier = DualPathVerifier(AcceleratorBackend(_config(args).build_driver()), SoftwareBackend(args.width),
                                verbose=args.verbose)
    report = verifier.verify(args.message, key_pair)
    print(f"Ciphertext:    {report.ciphertext}")
    print(f"Decrypted:     {report.plaintext}")
    print(f"Engine cycles: {report.hw_cycles}")
    print("HW dec == msg: OK")


def _run_keygen(args: argparse.Namespace) -> None:
    key_pair = RSAKeyGenerator(seed=args.seed).generate_keypair(key_length=args.bits)
    with open(args.out, 'w') as f:
        f.write(key_pair.export_private_pem())
    print(f"Key pair n={key_pair.public_key.n} e={key_pair.public_key.e} saved to '{args.out}'")


def _run_profile(args: argparse.Namespace) -> None:
    if args.samples < 1:
        raise ValueError("At least one sample is required")
    # Surfaces an even or oversized modulus before any base is drawn from it
    derive_params(args.modulus, args.width)
    rng = random.Random(args.seed)
    bases = [rng.randrange(args.modulus) for _ in range(args.samples)]
    exponents = [rng.getrandbits(args.exponent_bits) for _ in range(args.samples)]
    profile = profile_exponentiations(args.modulus, args.width, bases, exponents, args.exponent_bits,
                                      mode=EngineMode(args.mode))

    for key, value in profile.summary().items():
        print(f"{key:<12} {value}")
    print("\nbit  cycle delta")
    for bit, delta in enumerate(bit_leakage(profile, args.exponent_bits)):
        print(f"{bit:>3}  {delta:.1f}")
    if args.out:
        profile.save_csv(args.out)
        print(f"\nSamples saved to '{args.out}'")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    commands = {'modexp': _run_modexp, 'rsa': _run_rsa, 'keygen': _run_keygen, 'profile': _run_profile}
    try:
        commands[args.command](args)
    except FileNotFoundError as e:
        print(f"Error: The file '{e.filename}' was not found.", file=sys.stderr)
        return 1
    except (ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
