"""Module format detection and execution.

Formats are pluggable descriptors kept in an ordered registry; the first
descriptor whose `detect` accepts the source wins unless the load already
carries a format (metadata, inline hint, or shim).
"""

from .alias import EsAliasFormat
from .amd import AmdFormat
from .base import FormatDescriptor
from .base import dedupe
from .cjs import CommonJSFormat
from .global_script import GlobalFormat
from .registry import FormatRegistry

__all__ = [
    "FormatDescriptor",
    "FormatRegistry",
    "EsAliasFormat",
    "AmdFormat",
    "CommonJSFormat",
    "GlobalFormat",
    "dedupe",
]
