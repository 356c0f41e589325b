"""Base assertion classes for keg."""

from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel

if TYPE_CHECKING:
    from keg.models import InstalledKeg


class BaseAssertion(BaseModel):
    """Base class for all post-install assertions.

    Assertions validate that an installed keg is usable.

    Attributes:
        description: Optional human-readable description of what this assertion checks
        timeout_seconds: Maximum time to wait for assertion to pass (default: 30)

    Example:
        >>> class MyAssertion(BaseAssertion):
        ...     description: str = "Check binary exists"
        ...     timeout_seconds: int = 5
    """

    description: Optional[str] = None
    timeout_seconds: int = 30

    async def check(self, keg: "InstalledKeg") -> bool:
        """Check if this assertion passes for the given keg.

        Args:
            keg: The installed keg to validate

        Returns:
            True if assertion passes, False otherwise
        """
        raise NotImplementedError("Subclasses must implement check()")

    def label(self) -> str:
        return self.description or self.__class__.__name__
