from typing import Optional


class PreconditionError(ValueError):
    """
    Raised when a configuration or operand violates the accelerator's preconditions.

    The engine itself never checks its inputs (even modulus, operand >= N, bad width);
    the surrounding host code rejects such inputs explicitly with this error instead
    of letting the algorithm silently produce a wrong product.
    """
    pass


class HardwareTimeout(RuntimeError):
    """
    Raised when the done bit is not observed within the configured poll ceiling.

    The operation is abandoned (never retried). Callers running independent operations
    are expected to record the failure and move on to the next one.

    Attributes:
        label: Name of the accelerator instance that timed out
        polls: Number of status reads issued before giving up
    """

    def __init__(self, label: str, polls: int):
        self.label = label
        self.polls = polls
        super().__init__(f"HW timeout on {label}: done not observed after {polls} status polls")


class CorrectnessMismatch(RuntimeError):
    """
    Raised when the accelerated path and the software/reference path disagree.

    This is a functional defect and must always surface to the caller.

    Attributes:
        field: Which value disagreed (e.g. 'ciphertext', 'plaintext')
        expected: Value from the software or reference path
        actual: Value from the accelerated path
    """

    def __init__(self, field: str, expected: int, actual: int, context: Optional[str] = None):
        self.field = field
        self.expected = expected
        self.actual = actual
        message = f"{field} mismatch: expected {expected:#x}, got {actual:#x}"
        if context:
            message = f"{context}: {message}"
        super().__init__(message)
