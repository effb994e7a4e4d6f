"""
Register-mapped wrapper around the Montgomery engine.

Register map (byte offsets, 32-bit little-endian words):

  0x000  Operand A words   (R/W)
  0x200  Operand B words   (R/W)
  0x400  Modulus N words   (R/W)
  0x600  Result words      (R)    writes are ignored
  0x800  n'                (R/W)  stored but never read by the bit-serial engine
  0x804  Control           (R/W)  bit 0 = 1 pulses start, always reads 0
  0x808  Status            (R)    bit 0 = done, sticky until the next start

Each operand array holds n_bits / 32 words. Writes honour a 4-bit byte-enable mask so
only the addressed byte lanes change.
"""

from typing import Dict, List, Optional

from bigint_words import WORD_BITS, check_width, from_words
from montgomery_engine import EngineMode, MontgomeryEngine

OPERAND_A_OFFSET = 0x000
OPERAND_B_OFFSET = 0x200
MODULUS_OFFSET = 0x400
RESULT_OFFSET = 0x600
NPRIME_OFFSET = 0x800
CONTROL_OFFSET = 0x804
STATUS_OFFSET = 0x808

ARRAY_STRIDE = 0x200
CONTROL_START = 0x1
STATUS_DONE = 0x1
ALL_LANES = 0xF

_WRITABLE_ARRAYS = (OPERAND_A_OFFSET, OPERAND_B_OFFSET, MODULUS_OFFSET)


class AcceleratorDevice:
    """
    One accelerator instance: its register file, its engine and its clock.

    The clock advances ticks_per_access times on every bus access (modelling the time
    that elapses between polls) and can also be advanced explicitly with tick().
    Two differently sized accelerators are just two instances of this class.
    """

    def __init__(self, n_bits: int, mode: EngineMode = EngineMode.STEP,
                 ticks_per_access: int = 1, label: Optional[str] = None):
        if ticks_per_access < 0:
            raise ValueError("ticks_per_access must be non-negative")
        self.n_bits = n_bits
        self.n_words = check_width(n_bits)
        self.ticks_per_access = ticks_per_access
        self.label = label or f"montgomery_{n_bits}"
        self.engine = MontgomeryEngine(n_bits, mode=mode)
        self.clock_running = True
        self.reset()

    def reset(self) -> None:
        """Clear every register and return the engine to IDLE."""
        size = self.n_words * 4
        self._arrays: Dict[int, bytearray] = {
            offset: bytearray(size) for offset in _WRITABLE_ARRAYS + (RESULT_OFFSET,)
        }
        self._nprime = bytearray(4)
        self._start_pending = False
        self._done = False
        self.engine.reset()

    # ========== #
    # Bus access #
    # ========== #
    def write32(self, offset: int, value: int, byte_enable: int = ALL_LANES) -> None:
        """
        Write a 32-bit word, updating only the byte lanes enabled in byte_enable.

        Raises:
            ValueError: If the offset is unaligned or outside the register map
        """
        self._advance_clock()
        value &= 0xFFFFFFFF
        byte_enable &= ALL_LANES

        if offset == CONTROL_OFFSET:
            if byte_enable & 0x1 and value & CONTROL_START:
                self._start_pending = True
                self._done = False
            return
        if offset == STATUS_OFFSET:
            return

        buffer, position = self._locate(offset)
        if buffer is self._arrays[RESULT_OFFSET]:
            return
        for lane in range(4):
            if (byte_enable >> lane) & 1:
                buffer[position + lane] = (value >> (8 * lane)) & 0xFF

    def read32(self, offset: int) -> int:
        """
        Read a 32-bit word.

        Raises:
            ValueError: If the offset is unaligned or outside the register map
        """
        self._advance_clock()
        if offset == CONTROL_OFFSET:
            return 0
        if offset == STATUS_OFFSET:
            return STATUS_DONE if self._done else 0
        buffer, position = self._locate(offset)
        return int.from_bytes(buffer[position:position + 4], "little")

    def tick(self, cycles: int = 1) -> None:
        """Advance the accelerator clock. Does nothing while the clock is stopped."""
        if not self.clock_running:
            return
        for _ in range(cycles):
            start = self._start_pending
            self._start_pending = False
            if start:
                done = self.engine.tick(True, self._array_words(OPERAND_A_OFFSET),
                                        self._array_words(OPERAND_B_OFFSET),
                                        self._array_words(MODULUS_OFFSET))
            else:
                done = self.engine.tick(False)
            if done:
                self._arrays[RESULT_OFFSET][:] = b"".join(
                    word.to_bytes(4, "little") for word in self.engine.result)
                self._done = True

    # ======= #
    # Helpers #
    # ======= #
    @property
    def nprime(self) -> int:
        return int.from_bytes(self._nprime, "little")

    def result_value(self) -> int:
        return from_words(self._array_words(RESULT_OFFSET))

    def _advance_clock(self) -> None:
        if self.ticks_per_access:
            self.tick(self.ticks_per_access)

    def _array_words(self, base: int) -> List[int]:
        buffer = self._arrays[base]
        return [int.from_bytes(buffer[i:i + 4], "little") for i in range(0, len(buffer), 4)]

    def _locate(self, offset: int):
        if offset % 4:
            raise ValueError(f"Unaligned register access at {offset:#05x}")
        if offset == NPRIME_OFFSET:
            return self._nprime, 0
        base = offset - offset % ARRAY_STRIDE
        if base in self._arrays:
            index = (offset - base) // 4
            if index < self.n_words:
                return self._arrays[base], index * 4
        raise ValueError(f"No register mapped at {offset:#05x} ({self.n_words * WORD_BITS}-bit instance)")
