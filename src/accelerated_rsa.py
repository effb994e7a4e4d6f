"""
Raw RSA on top of the Montgomery exponentiation controller, plus the dual-path
verification harness that checks the accelerator against software.
"""

import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from accelerator_errors import CorrectnessMismatch, HardwareTimeout, PreconditionError
from modexp_controller import ModExpController, MontgomeryParams, derive_params
from montgomery_backends import AcceleratorBackend, MontgomeryBackend
from reference_multiplier import modexp_reference_int
from rsa_keys import RSAKeyPair, RSAPrivateKey, RSAPublicKey, TimedRSAInterface


class AcceleratedRSA(TimedRSAInterface):
    """
    Raw RSA (no padding) whose modular exponentiations run on a MontgomeryBackend.

    Exponents are limited to the controller's 32-bit scalar exponent. Montgomery
    parameters are derived once per modulus and cached.

    Args:
        backend: Strategy computing the Montgomery products
        verbose: Print controller diagnostics
    """

    def __init__(self, backend: MontgomeryBackend, verbose: bool = False):
        self.backend = backend
        self.controller = ModExpController(backend, verbose=verbose)
        self._params: Dict[int, MontgomeryParams] = {}

    def params_for(self, n: int) -> MontgomeryParams:
        if n not in self._params:
            self._params[n] = derive_params(n, self.backend.n_bits)
        return self._params[n]

    def exponentiate(self, base: int, exponent: int, n: int) -> int:
        return self.controller.exponentiate_with(self.params_for(n), base, exponent, exponent.bit_length())

    def timed_encrypt(self, message: int, public_key: RSAPublicKey) -> Tuple[int, float]:
        _check_operand("Message", message, public_key.n)
        start_time = time.perf_counter()
        ciphertext = self.exponentiate(message, public_key.e, public_key.n)
        return ciphertext, time.perf_counter() - start_time

    def timed_decrypt(self, ciphertext: int, private_key: RSAPrivateKey) -> Tuple[int, float]:
        _check_operand("Ciphertext", ciphertext, private_key.n)
        start_time = time.perf_counter()
        plaintext = self.exponentiate(ciphertext, private_key.d, private_key.n)
        return plaintext, time.perf_counter() - start_time

    def timed_sign(self, message: int, private_key: RSAPrivateKey) -> Tuple[int, float]:
        _check_operand("Message", message, private_key.n)
        start_time = time.perf_counter()
        signature = self.exponentiate(message, private_key.d, private_key.n)
        return signature, time.perf_counter() - start_time

    def timed_verify(self, signature: int, message: int, public_key: RSAPublicKey) -> Tuple[bool, float]:
        _check_operand("Signature", signature, public_key.n)
        _check_operand("Message", message, public_key.n)
        start_time = time.perf_counter()
        recovered = self.exponentiate(signature, public_key.e, public_key.n)
        return recovered == message, time.perf_counter() - start_time


def _check_operand(name: str, value: int, n: int) -> None:
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    if value >= n:
        raise ValueError(f"{name} must be smaller than modulus")


# ====================== #
# Dual-path verification #
# ====================== #
@dataclass
class VerificationReport:
    """
    Outcome of one encrypt/decrypt round trip checked on both paths.

    Attributes:
        ciphertext: Agreed ciphertext
        plaintext: Agreed recovered plaintext
        hw_cycles: Engine cycles spent by the accelerated path (0 if not measurable)
        hw_seconds: Wall-clock time of the accelerated encrypt + decrypt
        sw_seconds: Wall-clock time of the software encrypt + decrypt
    """
    ciphertext: int
    plaintext: int
    hw_cycles: int
    hw_seconds: float
    sw_seconds: float


class DualPathVerifier:
    """
    Runs every RSA operation through the accelerated and the software strategy and
    insists on bit-exact agreement, with the plain reference multiplier as a third opinion.

    Args:
        accelerated: Backend under test (normally an AcceleratorBackend)
        software: Software Montgomery backend of the same width
        verbose: Print a line per verified round trip
    """

    def __init__(self, accelerated: MontgomeryBackend, software: MontgomeryBackend, verbose: bool = False):
        if accelerated.n_bits != software.n_bits:
            raise PreconditionError("Both strategies must use the same operand width")
        self.hw = AcceleratedRSA(accelerated)
        self.sw = AcceleratedRSA(software)
        self.verbose = verbose

    @property
    def n_bits(self) -> int:
        return self.hw.backend.n_bits

    def verify(self, message: int, key_pair: RSAKeyPair) -> VerificationReport:
        """
        Encrypt then decrypt message on both paths and cross-check everything.

        Raises:
            CorrectnessMismatch: If the paths disagree, disagree with the reference
                multiplier, or fail to recover the message
            HardwareTimeout: If the accelerator stops responding
        """
        pub, priv = key_pair.public_key, key_pair.private_key
        backend = self.hw.backend
        cycles_before = backend.cycles if isinstance(backend, AcceleratorBackend) else 0

        c_hw, enc_hw = self.hw.timed_encrypt(message, pub)
        m_hw, dec_hw = self.hw.timed_decrypt(c_hw, priv)
        c_sw, enc_sw = self.sw.timed_encrypt(message, pub)
        m_sw, dec_sw = self.sw.timed_decrypt(c_sw, priv)

        expected = modexp_reference_int(message, pub.e, pub.e_bits, pub.n, self.n_bits)
        _expect_equal("ciphertext", c_sw, expected, "software vs reference")
        _expect_equal("ciphertext", c_hw, c_sw, "accelerator vs software")
        _expect_equal("plaintext", m_hw, m_sw, "accelerator vs software")
        _expect_equal("plaintext", m_sw, message, "round trip")

        hw_cycles = backend.cycles - cycles_before if isinstance(backend, AcceleratorBackend) else 0
        if self.verbose:
            print(f"[DEBUG] {self.n_bits}-bit: m={message} c={c_hw} dec={m_hw} OK ({hw_cycles} engine cycles)")
        return VerificationReport(ciphertext=c_hw, plaintext=m_hw, hw_cycles=hw_cycles,
                                  hw_seconds=enc_hw + dec_hw, sw_seconds=enc_sw + dec_sw)


def _expect_equal(field: str, actual: int, expected: int, context: str) -> None:
    if actual != expected:
        raise CorrectnessMismatch(field, expected, actual, context)


@dataclass
class VerificationCase:
    label: str
    verifier: DualPathVerifier
    message: int
    key_pair: RSAKeyPair


@dataclass
class CaseOutcome:
    label: str
    report: Optional[VerificationReport] = None
    timeout: Optional[HardwareTimeout] = None

    @property
    def ok(self) -> bool:
        return self.report is not None


def run_verification_suite(cases: List[VerificationCase], verbose: bool = False) -> List[CaseOutcome]:
    """
    Verify independent cases in order.

    A HardwareTimeout abandons only the case it occurred in; the suite records it and
    moves on. A CorrectnessMismatch is a defect and propagates immediately.
    """
    outcomes = []
    for case in cases:
        try:
            outcomes.append(CaseOutcome(case.label, report=case.verifier.verify(case.message, case.key_pair)))
        except HardwareTimeout as e:
            if verbose:
                print(f"[ERROR] {case.label}: {e}; skipping to next case")
            outcomes.append(CaseOutcome(case.label, timeout=e))
    return outcomes
