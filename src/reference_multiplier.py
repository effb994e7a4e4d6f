"""
Plain (non-Montgomery) modular multiplication used as an independent correctness oracle.

Nothing here shares code with the Montgomery engine or the software Montgomery routine,
so agreement between them and this module is meaningful. Outputs are ordinary residues
and must never be fed into a Montgomery-domain pipeline.
"""

from typing import List, Sequence

from bigint_words import (WORD_BITS, WORD_MASK, compare_words, extend_words, from_words,
                          sub_words, to_words)


def _bit_length(words: Sequence[int]) -> int:
    for i in range(len(words) - 1, -1, -1):
        if words[i]:
            return i * WORD_BITS + words[i].bit_length()
    return 0


def _shift_left(words: Sequence[int], shift: int, n_words: int) -> List[int]:
    """Shift left by an arbitrary bit count into a result of n_words words."""
    word_shift, bit_shift = divmod(shift, WORD_BITS)
    result = [0] * n_words
    for i, word in enumerate(words):
        j = i + word_shift
        if j < n_words:
            result[j] |= (word << bit_shift) & WORD_MASK
        if bit_shift and j + 1 < n_words:
            result[j + 1] |= word >> (WORD_BITS - bit_shift)
    return result


def modmul_reference(a: Sequence[int], b: Sequence[int], n: Sequence[int]) -> List[int]:
    """
    Compute (A * B) mod N on little-endian word lists of equal width.

    The full double-width product is accumulated with 64-bit intermediates, then reduced
    by repeated conditional subtraction of N shifted to every bit position.

    Args:
        a, b: Operands (any value below 2^N_BITS)
        n: Non-zero modulus

    Returns:
        The residue as a word list of the same width as the operands

    Raises:
        ValueError: If the modulus is zero
    """
    n_words = len(n)
    if not any(n):
        raise ValueError("Modulus must be non-zero")

    # Schoolbook multiply-accumulate into 2 * n_words words
    tmp = [0] * (2 * n_words)
    for i in range(n_words):
        carry = 0
        for j in range(n_words):
            t = tmp[i + j] + a[i] * b[j] + carry
            tmp[i + j] = t & WORD_MASK
            carry = t >> WORD_BITS
        tmp[i + n_words] += carry

    modulus = extend_words(n, 2 * n_words)
    for shift in range(max(_bit_length(tmp) - _bit_length(n), 0), -1, -1):
        shifted = _shift_left(modulus, shift, 2 * n_words)
        if compare_words(tmp, shifted) >= 0:
            tmp = sub_words(tmp, shifted)[0]

    return tmp[:n_words]


def modexp_reference(base: Sequence[int], exponent: int, bit_count: int,
                     n: Sequence[int]) -> List[int]:
    """
    Square-and-multiply exponentiation (LSB first) using only modmul_reference.

    Args:
        base: Base word list (< N)
        exponent: Scalar exponent
        bit_count: Number of exponent bits to scan
        n: Modulus word list

    Returns:
        base^exponent mod N as a word list
    """
    n_words = len(n)
    x = modmul_reference(to_words(1, n_words), to_words(1, n_words), n)
    a = list(base)
    for bit in range(bit_count):
        if (exponent >> bit) & 1:
            x = modmul_reference(x, a, n)
        a = modmul_reference(a, a, n)
    return x


def modexp_reference_int(base: int, exponent: int, bit_count: int, n: int, n_bits: int) -> int:
    """Integer convenience wrapper around modexp_reference."""
    n_words = n_bits // WORD_BITS
    return from_words(modexp_reference(to_words(base, n_words), exponent, bit_count,
                                       to_words(n, n_words)))
