"""Base token market data provider interface."""
from abc import ABC, abstractmethod
from typing import List, Dict, Any


class TokenDataProvider(ABC):
    """Abstract base class for token market data providers."""

    @abstractmethod
    async def filter_tokens(self, phrase: str, limit: int = 5) -> List[Dict[str, Any]]:
        """
        Find tokens matching an address or free-text phrase.

        Args:
            phrase: Token address, symbol or name
            limit: Max number of results

        Returns:
            Raw token records, best match first. Raises on transport/upstream errors.
        """
        pass
