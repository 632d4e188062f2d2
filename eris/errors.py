class ErisError(Exception):
    """Base class for ERIS encoding/decoding errors."""


# Capability / padding format
class FormatError(ErisError):
    pass


# Storage lookups
class NotFoundError(ErisError):
    pass


# Block hash does not match its reference
class IntegrityError(ErisError):
    pass


# Encode requested with an unsupported block size
class InvalidArityError(ErisError):
    pass
