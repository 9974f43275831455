"""Client keypair generation for registration."""

from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec


@dataclass(frozen=True, slots=True)
class KeyPair:
    private_key: str  # hex scalar
    public_key: str  # hex, uncompressed SEC1 point


def generate_keypair() -> KeyPair:
    """Generate a secp256k1 keypair encoded as hex strings."""
    private_key = ec.generate_private_key(ec.SECP256K1())
    private_hex = format(private_key.private_numbers().private_value, "064x")
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    return KeyPair(private_key=private_hex, public_key=public_bytes.hex())
