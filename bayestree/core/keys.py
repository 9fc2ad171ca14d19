"""
bayestree/core/keys.py

Variable keys and key formatting.

Keys are plain non-negative integers. Symbol keys pack a character and an
index into one key (character in the top byte of a 64-bit key), so that
"x3" and "l3" stay distinct.
"""

from __future__ import annotations

from typing import Callable, Iterable, Tuple

Key = int
KeyFormatter = Callable[[Key], str]

_CHR_BITS = 8
_INDEX_BITS = 64 - _CHR_BITS
_INDEX_MASK = (1 << _INDEX_BITS) - 1


def symbol(c: str, index: int) -> Key:
    """Pack a single character and an index into a key."""
    if len(c) != 1:
        raise ValueError(f"symbol character must be a single char, got {c!r}")
    if index < 0 or index > _INDEX_MASK:
        raise ValueError(f"symbol index out of range: {index}")
    return (ord(c) << _INDEX_BITS) | index


def symbol_chr(key: Key) -> str:
    return chr(key >> _INDEX_BITS)


def symbol_index(key: Key) -> int:
    return key & _INDEX_MASK


def default_key_formatter(key: Key) -> str:
    """Render symbol keys as 'x3', everything else as the integer."""
    c = key >> _INDEX_BITS
    if 0 < c < 128 and chr(c).isalpha():
        return f"{chr(c)}{key & _INDEX_MASK}"
    return str(key)


def format_keys(keys: Iterable[Key], key_formatter: KeyFormatter = default_key_formatter) -> str:
    """Space separated key names."""
    return " ".join(key_formatter(k) for k in keys)


def key_tuple(keys: Iterable[Key]) -> Tuple[Key, ...]:
    """Normalize a key sequence to a tuple of ints."""
    return tuple(int(k) for k in keys)
