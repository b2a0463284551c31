"""Centralized password hashing configuration."""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

PASSWORD_HASHER = PasswordHasher(
	time_cost=3,
	memory_cost=65536,
	parallelism=4,
	hash_len=32,
	salt_len=16,
)


def hash_password(password: str) -> str:
	return PASSWORD_HASHER.hash(password)


def verify_password(hash: str | None, password: str) -> bool:
	"""Return True when the password matches; invited users without a hash never match."""
	if not hash:
		return False
	try:
		return PASSWORD_HASHER.verify(hash, password)
	except (VerificationError, InvalidHashError):
		return False
