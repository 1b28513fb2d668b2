"""Exception types shared across the pipeline."""


class InvariantViolation(RuntimeError):
    """Internal state is inconsistent.

    Raised for programming errors only (corrupted bar history, negative ATR,
    a tick routed to the wrong bucket). Never caught inside the pipeline:
    a signal derived from corrupted state must not be emitted.
    """
