"""External source clients: the Limitless tournament site and the TCGplayer API."""

from .limitless import LimitlessClient
from .tcgplayer import (
    TcgplayerClient,
    TcgplayerConfigError,
    TcgplayerRequestError,
    TokenProvider,
)

__all__ = [
    "LimitlessClient",
    "TcgplayerClient",
    "TcgplayerConfigError",
    "TcgplayerRequestError",
    "TokenProvider",
]
