"""Key derivation helpers using PBKDF2-HMAC."""

from __future__ import annotations

from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from garuda_enc.crypto.secure_memory import secure_zeroize
from garuda_enc.errors import KeyDerivationError

# The container does not record the iteration count, so this value is part of
# the format: changing it makes older containers undecryptable.
DEFAULT_ITERATIONS = 5000
DEFAULT_HASH = "sha256"
ITERATIONS_MIN = 1
ITERATIONS_MAX = 10_000_000
ENC_KEY_LEN = 32
AUTH_KEY_LEN = 32

_HASHES = {
    "sha256": hashes.SHA256,
    # Legacy Windows builds stretched passwords with an HMAC-SHA-1 core.
    "sha1": hashes.SHA1,
}


@dataclass(frozen=True)
class KdfParams:
    iterations: int = DEFAULT_ITERATIONS
    hash_name: str = DEFAULT_HASH


@dataclass(frozen=True)
class DerivedKeys:
    """Encryption and authentication keys derived for one operation."""

    enc_key: bytearray
    auth_key: bytearray


def _password_bytes(password: str) -> bytes:
    # Undecodable argv/terminal bytes arrive surrogate-escaped; give them back
    # as the original bytes. Other lone surrogates are encoded as-is.
    try:
        return password.encode("utf-8", "surrogateescape")
    except UnicodeEncodeError:
        return password.encode("utf-8", "surrogatepass")


def derive_keys(
    password: str,
    salt: bytes,
    iterations: int = DEFAULT_ITERATIONS,
    *,
    hash_name: str = DEFAULT_HASH,
) -> DerivedKeys:
    """Stretch ``password`` with ``salt`` into 64 bytes and split them.

    The first 32 bytes become the AES-256 key, the next 32 bytes the
    HMAC-SHA-256 key. Only malformed inputs are rejected; any password text,
    including the empty string, is accepted.
    """

    if not salt:
        raise KeyDerivationError("Salt must not be empty")
    if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations <= 0:
        raise KeyDerivationError(f"Iteration count must be a positive integer, got {iterations!r}")
    try:
        algorithm = _HASHES[hash_name]()
    except KeyError as exc:
        raise KeyDerivationError(f"Unsupported KDF hash: {hash_name}") from exc

    kdf = PBKDF2HMAC(
        algorithm=algorithm,
        length=ENC_KEY_LEN + AUTH_KEY_LEN,
        salt=bytes(salt),
        iterations=iterations,
    )
    material = bytearray(kdf.derive(_password_bytes(password)))
    keys = DerivedKeys(
        enc_key=material[:ENC_KEY_LEN],
        auth_key=material[ENC_KEY_LEN:],
    )
    secure_zeroize(material)
    return keys


def resolve_kdf_params(
    iterations: int | None = None,
    hash_name: str | None = None,
) -> KdfParams:
    """Return default parameters with validated overrides applied."""

    params = recommended_params()
    resolved = KdfParams(
        iterations=params.iterations if iterations is None else iterations,
        hash_name=params.hash_name if hash_name is None else hash_name,
    )
    if not (ITERATIONS_MIN <= resolved.iterations <= ITERATIONS_MAX):
        raise KeyDerivationError(
            f"PBKDF2 iterations must be between {ITERATIONS_MIN} and {ITERATIONS_MAX}",
        )
    if resolved.hash_name not in _HASHES:
        raise KeyDerivationError(f"Unsupported KDF hash: {resolved.hash_name}")
    return resolved


def recommended_params() -> KdfParams:
    """Return the parameters compatible with the reference container format."""

    return KdfParams()
