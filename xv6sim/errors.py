"""Exceptions raised by the simulated kernel."""


class KernelPanic(RuntimeError):
    """An unrecoverable inconsistency detected by kernel code."""