import secrets
import string

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_transaction_code(prefix: str = "TRX", length: int = 12) -> str:
    """Human-facing code such as ``TRX-7K2M9QZ4XW1B``.

    Twelve characters over 36 symbols give about 62 random bits, enough to
    insert without a retry loop; the column is still UNIQUE.
    """
    if length < 10:
        raise ValueError("transaction code length must be at least 10")
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix}-{suffix}"
