"""Custom exceptions for Garuda Enc."""


class GarudaEncError(Exception):
    """Base exception for Garuda Enc."""


class InputError(GarudaEncError):
    """Source path is missing or in the wrong state for the requested operation."""


class ContainerFormatError(GarudaEncError):
    """Container does not match expected format."""


class NotAContainer(ContainerFormatError):
    """Stream does not start with the container magic tag."""


class TruncatedContainer(ContainerFormatError):
    """Stream ended before every header field was read."""


class EncodingError(ContainerFormatError):
    """Header field cannot be encoded into the container layout."""


class CryptoError(GarudaEncError):
    """Key derivation or block cipher failure."""


class KeyDerivationError(CryptoError):
    """Key derivation inputs are malformed."""


class PaddingError(CryptoError):
    """Decrypted data carries malformed PKCS#7 padding."""


class IntegrityError(GarudaEncError):
    """Plaintext integrity tag does not match the stored tag."""


class OperationAborted(GarudaEncError):
    """Operation was cancelled before it completed."""
