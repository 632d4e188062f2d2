# Capability URN
URN_PREFIX = "urn:erisx2:"

# Block sizes and their class bytes in the read capability
BLOCK_SIZE_SMALL = 1024
BLOCK_SIZE_LARGE = 32768

BLOCK_SIZE_TO_CLASS = {
    BLOCK_SIZE_SMALL: 0,
    BLOCK_SIZE_LARGE: 1,
}
CLASS_TO_BLOCK_SIZE = {v: k for k, v in BLOCK_SIZE_TO_CLASS.items()}

DEFAULT_BLOCK_SIZE = BLOCK_SIZE_LARGE

# Reference-key pair layout inside internal nodes
REFERENCE_SIZE = 32
KEY_SIZE = 32
SLOT_SIZE = REFERENCE_SIZE + KEY_SIZE  # 64
ZERO_SLOT = bytes(SLOT_SIZE)

# Arity per block size (block_size / 64): 16 and 512
ARITY_SMALL = BLOCK_SIZE_SMALL // SLOT_SIZE
ARITY_LARGE = BLOCK_SIZE_LARGE // SLOT_SIZE

# Binary read capability: class(1) | level(1) | reference(32) | key(32)
CAPABILITY_SIZE = 2 + REFERENCE_SIZE + KEY_SIZE  # 66
MAX_LEVEL = 255

# Padding marker appended after content, followed by zero fill
PAD_MARKER = 0x80

# ChaCha20 (IETF) with a constant all-zero 12-byte nonce
CHACHA_NONCE = bytes(12)

CONVERGENCE_SECRET_SIZE = 32
DEFAULT_CONVERGENCE_SECRET = bytes(CONVERGENCE_SECRET_SIZE)

# Argon2id parameters for passphrase-derived convergence secrets
ARGON_TIME_COST = 3
ARGON_MEMORY_COST_KIB = 64 * 1024  # 64 MiB
ARGON_PARALLELISM = 4
ARGON_DEFAULT_SALT = b"ERIS-CONVERGENCE"  # 16 bytes, shared by every user
ARGON_MIN_SALT_SIZE = 8


def arity_for_block_size(block_size: int) -> int:
    return block_size // SLOT_SIZE
