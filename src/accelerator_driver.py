"""
Host-side protocol for driving one accelerator instance.

One operation: write A, B and N words (and the inert n' scalar), pulse start, poll the
status register until the done bit shows up or the poll ceiling is reached, then read
the result words. Only one operation may be in flight per device; the driver's lock is
the mutual-exclusion boundary for callers sharing it.
"""

import asyncio
import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence

from accelerator_errors import HardwareTimeout
from accelerator_registers import (CONTROL_OFFSET, CONTROL_START, MODULUS_OFFSET, NPRIME_OFFSET,
                                   OPERAND_A_OFFSET, OPERAND_B_OFFSET, RESULT_OFFSET, STATUS_DONE,
                                   STATUS_OFFSET, AcceleratorDevice)
from montgomery_engine import EngineMode

# Max status polls before an operation is abandoned (prevents an infinite hang)
HW_DONE_TIMEOUT = 100_000_000

SUPPORTED_WIDTHS = (1024, 2048)


class AcceleratorDriver:
    """
    Synchronous, single-flight access to an AcceleratorDevice.

    Args:
        device: The register-mapped accelerator (or any object exposing read32/write32,
            n_words and label)
        max_polls: Exact number of status reads issued before HardwareTimeout
        verbose: Print diagnostics for every operation
    """

    def __init__(self, device: AcceleratorDevice, max_polls: int = HW_DONE_TIMEOUT, verbose: bool = False):
        if max_polls < 1:
            raise ValueError("max_polls must be at least 1")
        self.device = device
        self.max_polls = max_polls
        self.verbose = verbose
        self.last_polls = 0
        self._lock = threading.Lock()

    @property
    def n_words(self) -> int:
        return self.device.n_words

    @property
    def n_bits(self) -> int:
        return self.device.n_words * 32

    @property
    def last_cycles(self) -> int:
        """Engine cycles of the most recently completed operation."""
        return self.device.engine.cycles

    @property
    def last_add_count(self) -> int:
        return self.device.engine.add_count

    def operate(self, a: Sequence[int], b: Sequence[int], n: Sequence[int], n_prime: int = 0) -> List[int]:
        """
        Compute A * B * R^-1 mod N on the accelerator, blocking until done.

        Args:
            a, b, n: Little-endian word lists of n_words words each
            n_prime: Compatibility scalar written to the n' register

        Returns:
            The result words

        Raises:
            HardwareTimeout: If done is not observed within max_polls status reads
        """
        with self._lock:
            self._issue(a, b, n, n_prime)
            for polls in range(1, self.max_polls + 1):
                if self.device.read32(STATUS_OFFSET) & STATUS_DONE:
                    self.last_polls = polls
                    return self._read_result()
            self._timed_out()

    async def operate_async(self, a: Sequence[int], b: Sequence[int], n: Sequence[int],
                            n_prime: int = 0) -> List[int]:
        """
        Awaitable variant of operate() that yields to the event loop between polls.

        Same bounded-attempt contract: exactly max_polls status reads, then HardwareTimeout.
        """
        while not self._lock.acquire(blocking=False):
            await asyncio.sleep(0)
        try:
            self._issue(a, b, n, n_prime)
            for polls in range(1, self.max_polls + 1):
                if self.device.read32(STATUS_OFFSET) & STATUS_DONE:
                    self.last_polls = polls
                    return self._read_result()
                await asyncio.sleep(0)
            self._timed_out()
        except asyncio.CancelledError:
            self._abandon()
            raise
        finally:
            self._lock.release()

    def _issue(self, a: Sequence[int], b: Sequence[int], n: Sequence[int], n_prime: int) -> None:
        for name, words in (("A", a), ("B", b), ("N", n)):
            if len(words) != self.n_words:
                raise ValueError(f"Operand {name} must have exactly {self.n_words} words")

        for i in range(self.n_words):
            self.device.write32(OPERAND_A_OFFSET + 4 * i, a[i])
            self.device.write32(OPERAND_B_OFFSET + 4 * i, b[i])
            self.device.write32(MODULUS_OFFSET + 4 * i, n[i])
        self.device.write32(NPRIME_OFFSET, n_prime)
        self.device.write32(CONTROL_OFFSET, CONTROL_START)

    def _read_result(self) -> List[int]:
        result = [self.device.read32(RESULT_OFFSET + 4 * i) for i in range(self.n_words)]
        if self.verbose:
            print(f"[DEBUG] {self.device.label}: done after {self.last_polls} polls, "
                  f"result low word {result[0]:08x}")
        return result

    def _abandon(self) -> None:
        # A late done from an abandoned operation would otherwise answer the next call
        reset = getattr(self.device, "reset", None)
        if reset is not None:
            reset()

    def _timed_out(self) -> None:
        self.last_polls = self.max_polls
        self._abandon()
        if self.verbose:
            print(f"[ERROR] HW timeout in operate for {self.device.label} after {self.max_polls} polls")
        raise HardwareTimeout(self.device.label, self.max_polls)


@dataclass
class AcceleratorConfig:
    """
    Everything needed to stand up one accelerator instance and its driver.

    Attributes:
        n_bits: Operand width (multiple of 32, at most 4096)
        max_polls: Poll ceiling for each operation
        mode: STEP to clock the FSM state by state, COLLAPSED for fast I/O-only runs
        ticks_per_access: Clock ticks elapsing on each bus access
        verbose: Print driver diagnostics
    """
    n_bits: int = 1024
    max_polls: int = HW_DONE_TIMEOUT
    mode: EngineMode = EngineMode.STEP
    ticks_per_access: int = 1
    verbose: bool = False

    def build_driver(self, label: Optional[str] = None) -> AcceleratorDriver:
        device = AcceleratorDevice(self.n_bits, mode=self.mode, ticks_per_access=self.ticks_per_access,
                                   label=label)
        return AcceleratorDriver(device, max_polls=self.max_polls, verbose=self.verbose)
