"""Content integrity checks for downloaded artifacts."""

import hashlib
import logging
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import ChecksumMismatchError, FormulaError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

SUPPORTED_ALGORITHMS = {
    "sha256": 64,
    "sha512": 128,
}

_HEX = re.compile(r"^[0-9a-f]+$")


def checksum_fields(value: Any) -> Any:
    """Split "algo:hex" (or bare sha256 hex) into Checksum fields; other values pass through."""
    if isinstance(value, str):
        if ":" in value:
            algorithm, digest = value.split(":", 1)
            return {"algorithm": algorithm.strip(), "digest": digest}
        return {"algorithm": "sha256", "digest": value}
    return value


class Checksum(BaseModel):
    """An algorithm-qualified content hash.

    Example:
        >>> Checksum.parse("sha256:9843d546bd541b9bf58e2e1c3c85aa8ff0b2f3705630b84b9123be55a99d5202")
        Checksum(algorithm='sha256', digest='9843d5...')
    """

    model_config = ConfigDict(frozen=True)

    algorithm: str = "sha256"
    digest: str

    @field_validator("algorithm")
    @classmethod
    def _known_algorithm(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_ALGORITHMS:
            raise ValueError(
                f"unsupported checksum algorithm '{value}' "
                f"(expected one of: {', '.join(SUPPORTED_ALGORITHMS)})"
            )
        return value

    @field_validator("digest")
    @classmethod
    def _hex_digest(cls, value: str, info) -> str:
        value = value.strip().lower()
        if not _HEX.match(value):
            raise ValueError("checksum digest must be hexadecimal")
        algorithm = (info.data.get("algorithm") or "sha256").lower()
        expected = SUPPORTED_ALGORITHMS.get(algorithm)
        if expected is not None and len(value) != expected:
            raise ValueError(
                f"{algorithm} digest must be {expected} hex characters, got {len(value)}"
            )
        return value

    @classmethod
    def parse(cls, value: Any) -> "Checksum":
        """Build a Checksum from "algo:hex", a bare sha256 hex string, or a mapping."""
        if isinstance(value, Checksum):
            return value
        fields = checksum_fields(value)
        if isinstance(fields, dict):
            return cls(**fields)
        raise TypeError(f"cannot interpret {type(value).__name__} as a checksum")

    def hasher(self):
        return hashlib.new(self.algorithm)

    def matches(self, digest: str) -> bool:
        return digest.lower() == self.digest

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.digest}"


def parse_checksum(value: Any) -> Checksum:
    """Parse a checksum, turning validation problems into FormulaError."""
    try:
        return Checksum.parse(value)
    except (TypeError, ValueError) as e:
        raise FormulaError(f"Invalid checksum {value!r}: {e}") from e


def file_digest(path: Path, algorithm: str = "sha256") -> str:
    """Hash a file in chunks and return the hex digest."""
    digest = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def verify_file(path: Path, checksum: Checksum) -> None:
    """Raise ChecksumMismatchError unless the file hashes to the checksum."""
    actual = file_digest(path, checksum.algorithm)
    if not checksum.matches(actual):
        raise ChecksumMismatchError(
            str(checksum), f"{checksum.algorithm}:{actual}", str(path)
        )
    logger.debug(f"Verified {path} ({checksum})")
