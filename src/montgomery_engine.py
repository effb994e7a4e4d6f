"""
Bit-serial Montgomery multiplier modelled as an explicit finite-state machine.

The hardware core advances one state per clock edge. Here the clock edge is the tick()
method: callers that care about cycle counts step it one tick at a time, callers that
only need the product can run it collapsed. Both modes share the same tick() interface
and report identical cycle and addition counts.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from bigint_words import (add_words, check_width, conditional_subtract, extend_words, get_bit,
                          is_odd, shift_right_one, zero_words)


class EngineState(Enum):
    IDLE = "idle"
    LOAD = "load"
    ADD_A = "add_a"
    ADD_N = "add_n"
    SHIFT = "shift"
    FINAL_SUB = "final_sub"
    DONE = "done"


class EngineMode(Enum):
    STEP = "step"            # one FSM state per tick
    COLLAPSED = "collapsed"  # whole bit loop evaluated on the start tick


@dataclass
class EngineResult:
    """
    Outcome of a single Montgomery product.

    Attributes:
        product: A * B * R^-1 mod N as little-endian words
        cycles: Ticks from the one that observed start to the one that asserted done
        add_count: Number of conditional additions actually performed
    """
    product: List[int]
    cycles: int
    add_count: int


def engine_latency(n_bits: int) -> int:
    """Start tick + LOAD + three states per bit + FINAL_SUB."""
    return 3 * n_bits + 3


class MontgomeryEngine:
    """
    Computes A * B * R^-1 mod N with R = 2^n_bits, one multiplier bit per iteration.

    Per bit i of B: if the bit is set T += A; if T is odd T += N; then T >>= 1.
    After n_bits iterations a single conditional subtraction brings T below N.

    Preconditions are not checked here (N odd, N < R, A < N, B < N): the engine has no
    error path, exactly like the hardware it models.
    """

    def __init__(self, n_bits: int, mode: EngineMode = EngineMode.STEP):
        self.n_bits = n_bits
        self.n_words = check_width(n_bits)
        self.mode = mode
        self._handlers = {
            EngineState.LOAD: self._load,
            EngineState.ADD_A: self._add_a,
            EngineState.ADD_N: self._add_n,
            EngineState.SHIFT: self._shift,
            EngineState.FINAL_SUB: self._final_sub,
        }
        self.reset()

    def reset(self) -> None:
        """Power-on reset: back to IDLE with every register cleared."""
        self.state = EngineState.IDLE
        self.t = zero_words(self.n_words + 1)  # N_BITS + 1 bits
        self.a = zero_words(self.n_words + 1)
        self.b = zero_words(self.n_words)
        self.n = zero_words(self.n_words + 1)
        self.cursor = 0
        self.result = zero_words(self.n_words)
        self.done = False
        self.cycles = 0
        self.add_count = 0

    @property
    def busy(self) -> bool:
        return self.state not in (EngineState.IDLE, EngineState.DONE)

    def tick(self, start: bool, a: Optional[Sequence[int]] = None, b: Optional[Sequence[int]] = None,
             n: Optional[Sequence[int]] = None) -> bool:
        """
        Advance the machine by one clock edge.

        Args:
            start: Level of the start request line during this tick
            a, b, n: Operand port values; only sampled when IDLE observes start

        Returns:
            The done output after this tick (high for exactly one tick per operation)
        """
        self.done = False

        if self.state is EngineState.IDLE:
            if start:
                self._latch(a, b, n)
                self.cycles = 1
                self.add_count = 0
                self.state = EngineState.LOAD
                if self.mode is EngineMode.COLLAPSED:
                    self._collapse()
            return self.done

        if self.state is EngineState.DONE:
            # Re-arm only once the start request has been released
            if not start:
                self.state = EngineState.IDLE
            return self.done

        self.cycles += 1
        self.state = self._handlers[self.state]()
        return self.done

    def operate(self, a: Sequence[int], b: Sequence[int], n: Sequence[int]) -> EngineResult:
        """
        Run one complete product: pulse start, clock until done, release start.

        Args:
            a, b: Operands, n_words words each, both < N
            n: Odd modulus, n_words words

        Returns:
            EngineResult holding the product and the cycle/addition counters
        """
        self.reset()
        done = self.tick(True, a, b, n)
        while not done:
            done = self.tick(False)
        self.tick(False)
        return EngineResult(product=list(self.result), cycles=self.cycles, add_count=self.add_count)

    # ================= #
    # State transitions #
    # ================= #
    def _latch(self, a, b, n) -> None:
        # Ports are n_words wide: missing words read as zero, extra words are not wired
        self.a = extend_words(self._port(a), self.n_words + 1)
        self.b = self._port(b)
        self.n = extend_words(self._port(n), self.n_words + 1)

    def _port(self, words: Optional[Sequence[int]]) -> List[int]:
        return extend_words(list(words or [])[:self.n_words], self.n_words)

    def _load(self) -> EngineState:
        self.t = zero_words(self.n_words + 1)
        self.cursor = 0
        return EngineState.ADD_A

    def _add_a(self) -> EngineState:
        if get_bit(self.b, self.cursor):
            self.t = add_words(self.t, self.a)[0]
            self.add_count += 1
        return EngineState.ADD_N

    def _add_n(self) -> EngineState:
        # Adding an odd N to an odd T always leaves T even
        if is_odd(self.t):
            self.t = add_words(self.t, self.n)[0]
            self.add_count += 1
        return EngineState.SHIFT

    def _shift(self) -> EngineState:
        self.t = shift_right_one(self.t)
        self.cursor += 1
        if self.cursor == self.n_bits:
            return EngineState.FINAL_SUB
        return EngineState.ADD_A

    def _final_sub(self) -> EngineState:
        self.t = conditional_subtract(self.t, self.n)
        self.result = self.t[:self.n_words]
        self.done = True
        return EngineState.DONE

    def _collapse(self) -> None:
        """Evaluate LOAD and every bit iteration at once, leaving only FINAL_SUB pending."""
        self._load()
        while self.cursor < self.n_bits:
            self._add_a()
            self._add_n()
            self._shift()
        self.cycles = engine_latency(self.n_bits) - 1
        self.state = EngineState.FINAL_SUB
