import secrets
import time


def generate_number(prefix: str) -> str:
    """
    Display identifier: '<PREFIX>-<epoch-ms>-<3-digit-random>'.
    Example: 'ORD-1714650000000-042'
    Uniqueness is enforced by the column constraint; a collision surfaces
    as an IntegrityError and is not retried.
    """
    return f"{prefix}-{int(time.time() * 1000)}-{secrets.randbelow(1000):03d}"


def generate_order_number() -> str:
    return generate_number("ORD")


def generate_rfq_number() -> str:
    return generate_number("RFQ")
