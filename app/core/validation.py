import base58

from app.core.errors import InvalidInput

PUBKEY_LENGTH = 32
SIGNATURE_LENGTH = 64

def _decoded_length(value: str) -> int:
    try:
        return len(base58.b58decode(value))
    except ValueError:
        return -1

def is_valid_address(address: str) -> bool:
    """Base58 string that decodes to a 32-byte public key."""
    if not isinstance(address, str) or not 32 <= len(address) <= 44:
        return False
    return _decoded_length(address) == PUBKEY_LENGTH

def is_valid_signature(signature: str) -> bool:
    """Base58 string that decodes to a 64-byte ed25519 signature."""
    if not isinstance(signature, str) or not 64 <= len(signature) <= 88:
        return False
    return _decoded_length(signature) == SIGNATURE_LENGTH

def validate_signature(signature: str, simulated_prefix: str | None = None) -> str:
    """
    Raise InvalidInput unless the signature is a real ledger signature, or,
    when a simulated prefix is configured, a prefixed test signature.
    """
    if simulated_prefix and isinstance(signature, str) and signature.startswith(simulated_prefix):
        if len(signature) > len(simulated_prefix):
            return signature
        raise InvalidInput("Transaction signature is required")
    if not is_valid_signature(signature):
        raise InvalidInput("Transaction signature must be a valid Solana signature")
    return signature

def validate_address(address: str, field: str = "wallet") -> str:
    if not is_valid_address(address):
        raise InvalidInput(f"Invalid {field} address", details={"field": field})
    return address
