"""
Booking code and transaction id generation.

Booking codes look like TAXI<base36 ms timestamp><5 random base36 chars>,
all upper-case, e.g. TAXIMGXK2Q1A7Z4QP. Codes from the same millisecond
differ only in the random suffix, so collisions are possible; the unique
index on bookings.booking_code catches them and the engine retries with a
fresh code.
"""

import secrets
from datetime import datetime

BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
RANDOM_SUFFIX_LENGTH = 5


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def generate_booking_code(moment: datetime, prefix: str = "TAXI") -> str:
    timestamp = to_base36(epoch_millis(moment))
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(RANDOM_SUFFIX_LENGTH))
    return f"{prefix}{timestamp}{suffix}"


def generate_transaction_id(moment: datetime) -> str:
    return f"TXN{epoch_millis(moment)}"
