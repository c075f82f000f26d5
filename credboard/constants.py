"""Curve parameters and wire constants shared by signer and verifier."""

# secp256k1 (SEC 2 v2, section 2.4.1)
P = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
A = 0
B = 7
GX = 0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798
GY = 0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8

SECRET_KEY_BYTES = 32
USER_HASH_BYTES = 32
NONCE_BYTES = 32
AUTHOR_BYTES = 132
FIELD_BYTES = 32

# Hash outputs and secret keys are cut to this many bytes (120 bits) before
# being used as scalars. Signer and verifier must agree on it.
TRUNCATION_BYTES = 15

MAX_LIVELINESS = 255
DEFAULT_MIN_LIVELINESS = 60
DEFAULT_LIVELINESS = 100

DEFAULT_AUTHORITY_KEY = bytes([0x11]) * SECRET_KEY_BYTES
