from typing import Optional


def clear_bytes(data: Optional[bytearray]) -> None:
    """Attempt to clear sensitive bytes from memory."""
    if isinstance(data, bytearray):
        for i in range(len(data)):
            data[i] = 0
