"""One-way hashing of normalized PII fields."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import fields, replace

from adsync.visits.schema import EnrichedVisit, HashedFields

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHM = "sha256"


class FieldHasher:
    """Hashes normalized fields with a configurable digest.

    Ad platforms match on unsalted SHA-256 of the normalized value, so the
    default salt is empty.

    Example:
        >>> hasher = FieldHasher()
        >>> len(hasher.hash_value("jane@example.com"))
        64
    """

    def __init__(self, algorithm: str = DEFAULT_ALGORITHM, salt: str = ""):
        self.algorithm = DEFAULT_ALGORITHM
        self.salt = salt
        self.set_algorithm(algorithm)

    def set_algorithm(self, algorithm: str) -> None:
        """Switch digest algorithm; unknown names keep the current one."""
        name = algorithm.strip().lower()
        if name not in hashlib.algorithms_available:
            logger.warning(
                f"Hash algorithm '{algorithm}' is not available; keeping '{self.algorithm}'"
            )
            return
        self.algorithm = name

    def hash_value(self, value: str | None) -> str | None:
        """Return the lowercase hex digest of ``value``, or None if empty."""
        if value is None or value == "":
            return None
        digest = hashlib.new(self.algorithm, f"{self.salt}{value}".encode())
        if digest.digest_size == 0:
            # Variable-length digests (shake_*) need an explicit length
            return digest.hexdigest(32)  # type: ignore[call-arg]
        return digest.hexdigest()

    def hash(self, visit: EnrichedVisit) -> EnrichedVisit:
        """Return ``visit`` with hashed fields derived from its normalized fields."""
        normalized = visit.normalized
        hashed = HashedFields(
            **{f.name: self.hash_value(getattr(normalized, f.name)) for f in fields(HashedFields)}
        )
        return replace(visit, hashed=hashed)

    def hash_all(self, visits: list[EnrichedVisit]) -> list[EnrichedVisit]:
        return [self.hash(visit) for visit in visits]
