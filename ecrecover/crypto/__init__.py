# ECDSA signing, verification and public key recovery on secp256k1

from .errors import (
    ECDSAError,
    NotInvertibleError,
    PointDecodeError,
    InvalidSignatureRange,
    SigningError,
    RecoveryError,
    XTooLargeError,
    CofactorCheckError,
    RecoveryIdNotFoundError,
)
from .field import PrimeField, inverse_mod
from .curve import CurveParameters, Point, SECP256K1, G
from .keys import PrivateKey, PublicKey, KeyPair
from .signing import Signature, digest_to_int, sign, verify, verify_signature
from .recovery import (
    RecoverableSignature,
    recover_public_key,
    recover_candidates,
    find_recovery_id,
    sign_with_recovery,
    recover_from_envelope,
)
from .hash import sha256, double_sha256, message_hash
from .message import sign_message, recover_message_signer, verify_message

__all__ = [
    # Errors
    'ECDSAError',
    'NotInvertibleError',
    'PointDecodeError',
    'InvalidSignatureRange',
    'SigningError',
    'RecoveryError',
    'XTooLargeError',
    'CofactorCheckError',
    'RecoveryIdNotFoundError',
    # Field and curve arithmetic
    'PrimeField',
    'inverse_mod',
    'CurveParameters',
    'Point',
    'SECP256K1',
    'G',
    # Key management
    'PrivateKey',
    'PublicKey',
    'KeyPair',
    # Signing and verification
    'Signature',
    'digest_to_int',
    'sign',
    'verify',
    'verify_signature',
    # Recovery
    'RecoverableSignature',
    'recover_public_key',
    'recover_candidates',
    'find_recovery_id',
    'sign_with_recovery',
    'recover_from_envelope',
    # Message signing
    'sha256',
    'double_sha256',
    'message_hash',
    'sign_message',
    'recover_message_signer',
    'verify_message',
]
