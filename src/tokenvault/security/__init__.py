"""
Security package for TokenVault.

Identifier tokenization, the rotatable HMAC keyring and file permission
helpers.
"""

from .encryption import KeyWrapper
from .keyring import HmacKeyring, KeyringTokenizerProvider
from .tokenizer import (
    HmacTokenizer,
    StaticTokenizerProvider,
    TokenizerHandle,
    TokenizerProvider,
    content_id,
    tokenize,
)

__all__ = [
    "HmacKeyring",
    "HmacTokenizer",
    "KeyWrapper",
    "KeyringTokenizerProvider",
    "StaticTokenizerProvider",
    "TokenizerHandle",
    "TokenizerProvider",
    "content_id",
    "tokenize",
]
