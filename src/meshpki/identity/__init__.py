"""
Identity Material

Key pairs and common-name distinguished names.
"""

from .keys import KeyGenerator, KeyPair, generate_key_pair
from .names import common_name, from_common_name

__all__ = [
    "KeyGenerator",
    "KeyPair",
    "generate_key_pair",
    "common_name",
    "from_common_name",
]
