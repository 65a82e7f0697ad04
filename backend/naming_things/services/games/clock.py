import time


def now() -> float:
    """Server-authoritative wall clock, epoch seconds. Patched in tests."""
    return time.time()
