import hashlib
import secrets
from enum import Enum

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from pulsewatch.db.base import Base, TimestampMixin, UUIDMixin


class ApiKeyRole(str, Enum):
    READ = "r"
    WRITE = "w"
    READ_WRITE = "rw"


def generate_api_key() -> str:
    """Generate a secure API key with a pw_ prefix."""
    return f"pw_{secrets.token_hex(32)}"


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()


class ApiKey(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "api_keys"

    # The full key is only returned once at creation time
    key_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    key_prefix: Mapped[str] = mapped_column(String(20), nullable=False)  # First few chars for identification

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(2), default=ApiKeyRole.READ_WRITE.value, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def allows(self, permission: str) -> bool:
        """Check a single-letter permission ('r' or 'w') against the key role."""
        return permission in self.role
