"""
Deterministic Identifier Derivation

Singleton per-block records (limit snapshots) have no id of their own in
the event. Their id is derived from a salt and the block number, so
processing the same block twice lands on the same record.

DERIVATION RULES:
1. body = salt + hex(block_number) without the 0x prefix
2. Odd-length body gets one leading "0" (keccak takes whole bytes)
3. id = "0x" + keccak256(bytes.fromhex(body)).hex()

Same (salt, block_number) -> same id. Always.
Changing any of the rules above re-keys every stored LimitMessage.
"""

from eth_hash.auto import keccak


# Salt used for LimitMessage ids
LIMIT_MESSAGE_SALT = "0"


class IdentifierError(ValueError):
    """Raised when an id cannot be derived from the given inputs."""
    pass


def normalize_length(hex_body: str) -> str:
    """Left-pad a hex string with one zero if it has odd length."""
    if len(hex_body) % 2 == 1:
        return "0" + hex_body
    return hex_body


def derive_message_id(salt: str, block_number: int) -> str:
    """
    Derive the id of a singleton per-block record.

    Args:
        salt: Hex-digit prefix distinguishing record families
        block_number: Block the record belongs to

    Returns:
        Lowercase 0x-prefixed hex of the 32-byte keccak256 digest

    Raises:
        IdentifierError: If the block number is negative or the salt is not hex
    """
    if isinstance(block_number, bool) or not isinstance(block_number, int):
        raise IdentifierError(
            f"block_number must be an int, got {type(block_number).__name__}"
        )
    if block_number < 0:
        raise IdentifierError(f"block_number must be non-negative, got {block_number}")

    body = normalize_length(salt + format(block_number, "x"))
    try:
        data = bytes.fromhex(body)
    except ValueError as e:
        raise IdentifierError(f"salt {salt!r} is not a hex string") from e

    return "0x" + keccak(data).hex()


def limit_message_id(block_number: int) -> str:
    """Id of the LimitMessage for a block."""
    return derive_message_id(LIMIT_MESSAGE_SALT, block_number)
