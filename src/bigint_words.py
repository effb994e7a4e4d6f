"""
Fixed-width unsigned big integers stored as little-endian lists of 32-bit words.

Every accelerator register array holds a value in this layout: word 0 is the least
significant 32 bits. All binary operations expect both operands to have the same
number of words.
"""

from typing import List, Sequence, Tuple

from accelerator_errors import PreconditionError

WORD_BITS = 32
WORD_MASK = 0xFFFFFFFF

# Each operand array occupies 0x200 bytes of the register window
MAX_WIDTH_BITS = 0x200 * 8


def check_width(n_bits: int) -> int:
    """
    Validate an operand width and return its word count.

    Args:
        n_bits: Operand width in bits

    Returns:
        Number of 32-bit words per operand

    Raises:
        PreconditionError: If the width is not a positive multiple of 32 or does
            not fit the register window
    """
    if n_bits < WORD_BITS or n_bits % WORD_BITS != 0:
        raise PreconditionError(f"Operand width must be a positive multiple of 32 bits, got {n_bits}")
    if n_bits > MAX_WIDTH_BITS:
        raise PreconditionError(f"Operand width {n_bits} exceeds the {MAX_WIDTH_BITS}-bit register window")
    return n_bits // WORD_BITS


def zero_words(n_words: int) -> List[int]:
    return [0] * n_words


def to_words(value: int, n_words: int) -> List[int]:
    """
    Split a non-negative integer into n_words little-endian 32-bit words.

    Raises:
        ValueError: If the value is negative or does not fit in n_words words
    """
    if value < 0:
        raise ValueError("Big integers are unsigned")
    if value >> (WORD_BITS * n_words):
        raise ValueError(f"Value does not fit in {n_words} words")
    return [(value >> (WORD_BITS * i)) & WORD_MASK for i in range(n_words)]


def from_words(words: Sequence[int]) -> int:
    value = 0
    for word in reversed(words):
        value = (value << WORD_BITS) | word
    return value


def extend_words(words: Sequence[int], n_words: int) -> List[int]:
    """Zero-extend a word list to n_words words."""
    return list(words) + [0] * (n_words - len(words))


def add_words(a: Sequence[int], b: Sequence[int]) -> Tuple[List[int], int]:
    """
    Add two equal-width word lists.

    Returns:
        Tuple of (sum_words, carry_out)
    """
    result = []
    carry = 0
    for x, y in zip(a, b):
        t = x + y + carry
        result.append(t & WORD_MASK)
        carry = t >> WORD_BITS
    return result, carry


def sub_words(a: Sequence[int], b: Sequence[int]) -> Tuple[List[int], int]:
    """
    Subtract b from a (equal width).

    Returns:
        Tuple of (difference_words, borrow_out); borrow_out is 1 when b > a
    """
    result = []
    borrow = 0
    for x, y in zip(a, b):
        t = x - y - borrow
        borrow = 1 if t < 0 else 0
        result.append(t & WORD_MASK)
    return result, borrow


def compare_words(a: Sequence[int], b: Sequence[int]) -> int:
    """Compare from the most significant word down. Returns -1, 0 or 1."""
    for x, y in zip(reversed(a), reversed(b)):
        if x > y:
            return 1
        if x < y:
            return -1
    return 0


def conditional_subtract(value: Sequence[int], modulus: Sequence[int]) -> List[int]:
    """Return value - modulus if value >= modulus, else a copy of value."""
    if compare_words(value, modulus) >= 0:
        return sub_words(value, modulus)[0]
    return list(value)


def shift_right_one(words: Sequence[int]) -> List[int]:
    result = []
    for i, word in enumerate(words):
        upper = words[i + 1] & 1 if i + 1 < len(words) else 0
        result.append((word >> 1) | (upper << (WORD_BITS - 1)))
    return result


def is_odd(words: Sequence[int]) -> bool:
    return bool(words[0] & 1)


def get_bit(words: Sequence[int], index: int) -> int:
    return (words[index // WORD_BITS] >> (index % WORD_BITS)) & 1
