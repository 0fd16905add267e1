"""Cart engine tunables, read from the environment."""

import os


def _int_env(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = int(raw)
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {value}")
    return value


# Re-reads after a duplicate-key rejection on cart creation
CART_CREATE_REREAD_ATTEMPTS = _int_env("CART_CREATE_REREAD_ATTEMPTS", 3)

# Linear backoff step between those re-reads, in milliseconds (0 disables)
CART_CREATE_REREAD_BACKOFF_MS = _int_env("CART_CREATE_REREAD_BACKOFF_MS", 25, minimum=0)

# Reload-and-retry attempts when a cart write loses a revision race
CART_WRITE_ATTEMPTS = _int_env("CART_WRITE_ATTEMPTS", 3)

CURRENCY = os.getenv("CURRENCY", "USD")
