"""linear-toon - compact TOON output for Linear workspace data."""

__version__ = "0.1.0"

from .registry import RegistryStore, ShortKeyRegistry
from .toon import ToonError, encode_response, safe_encode

__all__ = [
    "RegistryStore",
    "ShortKeyRegistry",
    "ToonError",
    "encode_response",
    "safe_encode",
    "__version__",
]
