#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Position-independent scanning over calldata bytes.

Extension blocks are located by searching for sentinel byte patterns rather
than by fixed offset. Positions are byte offsets into the full calldata
(selector included), and every block read is bounds-checked.
"""

from typing import List

from .errors import InsufficientData

BLOCK_SIZE = 32


def find_all(buf: bytes, pattern: bytes) -> List[int]:
    """Every (possibly overlapping) start offset of `pattern` in `buf`."""
    out: List[int] = []
    i = buf.find(pattern)
    while i != -1:
        out.append(i)
        i = buf.find(pattern, i + 1)
    return out


def find_last(buf: bytes, pattern: bytes) -> int:
    return buf.rfind(pattern)


def read_block(buf: bytes, pos: int, what: str = "block") -> bytes:
    """The 32-byte block starting at `pos`."""
    if pos < 0:
        raise InsufficientData(f"{what}: needs {-pos} more bytes before the buffer start")
    end = pos + BLOCK_SIZE
    if end > len(buf):
        raise InsufficientData(f"{what}: needs bytes up to {end}, buffer has {len(buf)}")
    return buf[pos:end]


def read_blocks(buf: bytes, pos: int, count: int, what: str = "blocks") -> List[bytes]:
    return [read_block(buf, pos + i * BLOCK_SIZE, f"{what}[{i}]") for i in range(count)]
