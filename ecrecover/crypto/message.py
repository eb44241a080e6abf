"""
Recoverable message signatures.

Signs text messages so that the signature alone identifies the signer: the
verifier recovers the public key from the 65-byte envelope and compares it
with the key it expects, no separate public key needs to travel with the
message.
"""

import logging
from typing import Callable, Optional, Tuple, Union

from .errors import ECDSAError
from .hash import message_hash
from .keys import PrivateKey, PublicKey
from .recovery import RecoverableSignature, sign_with_recovery

logger = logging.getLogger(__name__)


def sign_message(
    private_key: PrivateKey,
    message: Union[str, bytes],
    compressed: bool = True,
    entropy: Optional[Callable[[int], bytes]] = None,
) -> bytes:
    """
    Sign a message and return the 65-byte recoverable signature envelope.

    Args:
        private_key: The signing key.
        message: The message text (UTF-8 encoded) or raw bytes.
        compressed: Set the compressed flag in the header (the default, as
            modern wallets use compressed keys).
        entropy: Optional random source for the nonce.
    """
    recoverable = sign_with_recovery(
        message_hash(message), private_key, compressed=compressed, entropy=entropy
    )
    return recoverable.to_bytes()


def recover_message_signer(
    message: Union[str, bytes],
    envelope: bytes,
) -> Tuple[PublicKey, bool]:
    """
    Recover the public key that signed ``message``.

    Returns:
        A tuple of (public_key, compressed_flag).

    Raises:
        ValueError: If the envelope is malformed.
        ECDSAError: If no public key can be recovered.
    """
    recoverable = RecoverableSignature.from_bytes(envelope)
    return recoverable.recover(message_hash(message)), recoverable.compressed


def verify_message(
    public_key: PublicKey,
    message: Union[str, bytes],
    envelope: bytes,
) -> bool:
    """
    Check that ``envelope`` is a signature of ``message`` by ``public_key``.

    The recovered key must match ``public_key`` and the signature must also
    pass ordinary ECDSA verification. Never raises for malformed input.
    """
    digest = message_hash(message)
    try:
        recoverable = RecoverableSignature.from_bytes(envelope)
        recovered = recoverable.recover(digest)
    except (ValueError, ECDSAError) as e:
        logger.debug("Message signature rejected: %s", e)
        return False
    if recovered != public_key:
        return False
    return public_key.verify(digest, recoverable.signature)
