"""Byte layouts of typed account content.

Regular accounts use a packed little-endian encoding; zero-copy accounts use a
C-style layout where each field is aligned to min(size, 8). Both are prefixed
by an 8 byte discriminator derived from the type name. Accounts of the
upgradeable loader are bincode enums, prefixed by a four byte variant tag.
"""
from __future__ import annotations

import hashlib
import struct
from types import SimpleNamespace
from typing import Dict, List, Optional, Sequence, Tuple

from warden.runtime.pubkey import BPF_LOADER_UPGRADEABLE_ID, Pubkey, TOKEN_PROGRAM_ID

DISCRIMINATOR_SIZE = 8

# name -> (struct format or None, size, alignment)
SCALARS: Dict[str, Tuple[Optional[str], int, int]] = {
    "u8":   ("<B", 1, 1),
    "i8":   ("<b", 1, 1),
    "u16":  ("<H", 2, 2),
    "i16":  ("<h", 2, 2),
    "u32":  ("<I", 4, 4),
    "i32":  ("<i", 4, 4),
    "u64":  ("<Q", 8, 8),
    "i64":  ("<q", 8, 8),
    "u128": (None, 16, 8),
    "i128": (None, 16, 8),
    "bool": ("<?", 1, 1),
    "Pubkey": (None, 32, 1),
    "COption<Pubkey>": (None, 36, 4),
    "COption<u64>": (None, 12, 4),
    "Option<Pubkey>": (None, 33, 1),
}

USER_FIELD_TYPES = frozenset(t for t in SCALARS if "Option" not in t)


class LayoutError(ValueError):
    pass


class VariantMismatch(LayoutError):
    """The account holds another variant of the enum its type reads."""


def _default(ty: str):
    if ty == "Pubkey":
        return Pubkey.default()
    if ty == "bool":
        return False
    if "Option" in ty:
        return None
    return 0


def _pack(ty: str, value) -> bytes:
    fmt, size, _ = SCALARS[ty]
    if fmt is not None:
        return struct.pack(fmt, value)
    if ty == "Pubkey":
        return bytes(value)
    if ty in ("u128", "i128"):
        return int(value).to_bytes(16, "little", signed=(ty == "i128"))
    if ty == "COption<Pubkey>":
        return struct.pack("<I", 0) + bytes(32) if value is None else struct.pack("<I", 1) + bytes(value)
    if ty == "COption<u64>":
        return struct.pack("<IQ", 0, 0) if value is None else struct.pack("<IQ", 1, value)
    if ty == "Option<Pubkey>":
        return bytes(33) if value is None else b"\x01" + bytes(value)
    raise LayoutError(f"unsupported field type {ty}")


def _unpack(ty: str, buf: bytes, offset: int):
    fmt, size, _ = SCALARS[ty]
    chunk = buf[offset:offset + size]
    if len(chunk) < size:
        raise LayoutError("buffer too short")
    if fmt is not None:
        return struct.unpack(fmt, chunk)[0]
    if ty == "Pubkey":
        return Pubkey(chunk)
    if ty in ("u128", "i128"):
        return int.from_bytes(chunk, "little", signed=(ty == "i128"))
    if ty == "Option<Pubkey>":
        if chunk[0] > 1:
            raise LayoutError(f"invalid option tag {chunk[0]}")
        return Pubkey(chunk[1:]) if chunk[0] else None
    tag = struct.unpack_from("<I", chunk)[0]
    if tag == 0:
        return None
    if tag != 1:
        raise LayoutError(f"invalid option tag {tag}")
    if ty == "COption<Pubkey>":
        return Pubkey(chunk[4:])
    return struct.unpack_from("<Q", chunk, 4)[0]


class AccountType:
    """Layout of one `#[account]` struct (or a built-in token layout)."""

    def __init__(self, name: str, fields: Sequence[Tuple[str, str]], zero_copy: bool = False,
                 owner: Optional[Pubkey] = None, discriminated: bool = True,
                 initialized_field: Optional[str] = None):
        for fname, ty in fields:
            if ty not in SCALARS:
                raise LayoutError(f"unsupported field type {ty} for {name}.{fname}")
        self.name = name
        self.fields: List[Tuple[str, str]] = list(fields)
        self.zero_copy = zero_copy
        # None means "the program that declared the type".
        self.owner = owner
        self.discriminated = discriminated
        self.initialized_field = initialized_field
        self._offsets, self._size = self._layout()

    def __repr__(self):
        return f"AccountType({self.name})"

    @property
    def discriminator(self) -> bytes:
        if not self.discriminated:
            return b""
        return hashlib.sha256(f"account:{self.name}".encode()).digest()[:DISCRIMINATOR_SIZE]

    @property
    def header_size(self) -> int:
        return DISCRIMINATOR_SIZE if self.discriminated else 0

    def _layout(self):
        offsets = []
        pos = 0
        max_align = 1
        for _, ty in self.fields:
            _, size, align = SCALARS[ty]
            if self.zero_copy:
                pos = (pos + align - 1) // align * align
                max_align = max(max_align, align)
            offsets.append(pos)
            pos += size
        if self.zero_copy:
            pos = (pos + max_align - 1) // max_align * max_align
        return offsets, pos

    def size(self) -> int:
        """Size of the content, without the discriminator."""
        return self._size

    def space(self) -> int:
        """Default account space: header plus content size."""
        return self.header_size + self._size

    def default(self) -> SimpleNamespace:
        return SimpleNamespace(**{fname: _default(ty) for fname, ty in self.fields})

    def serialize(self, value: SimpleNamespace) -> bytes:
        out = bytearray(self._size)
        for (fname, ty), off in zip(self.fields, self._offsets):
            raw = _pack(ty, getattr(value, fname))
            out[off:off + len(raw)] = raw
        return bytes(out)

    def decode(self, data: bytes) -> SimpleNamespace:
        """Content of a whole account buffer, header skipped."""
        return self.deserialize(data[self.header_size:])

    def deserialize(self, buf: bytes) -> SimpleNamespace:
        if len(buf) < self._size:
            raise LayoutError(f"{self.name}: need {self._size} bytes, got {len(buf)}")
        values = {}
        for (fname, ty), off in zip(self.fields, self._offsets):
            values[fname] = _unpack(ty, buf, off)
        return SimpleNamespace(**values)

    def is_initialized(self, value: SimpleNamespace) -> bool:
        if self.initialized_field is None:
            return True
        return bool(getattr(value, self.initialized_field))

    def write(self, data: bytearray, value: SimpleNamespace) -> None:
        """Write discriminator and content into an account buffer."""
        raw = self.discriminator + self.serialize(value)
        if len(data) < len(raw):
            raise LayoutError(f"{self.name}: account has {len(data)} bytes, need {len(raw)}")
        data[:len(raw)] = raw


def make_account_type(name: str, fields: Sequence[Tuple[str, str]], zero_copy: bool = False) -> AccountType:
    return AccountType(name, fields, zero_copy=zero_copy)


TOKEN_ACCOUNT = AccountType(
    "TokenAccount",
    [
        ("mint", "Pubkey"),
        ("owner", "Pubkey"),
        ("amount", "u64"),
        ("delegate", "COption<Pubkey>"),
        ("state", "u8"),
        ("is_native", "COption<u64>"),
        ("delegated_amount", "u64"),
        ("close_authority", "COption<Pubkey>"),
    ],
    owner=TOKEN_PROGRAM_ID,
    discriminated=False,
    initialized_field="state",
)

MINT = AccountType(
    "Mint",
    [
        ("mint_authority", "COption<Pubkey>"),
        ("supply", "u64"),
        ("decimals", "u8"),
        ("is_initialized", "bool"),
        ("freeze_authority", "COption<Pubkey>"),
    ],
    owner=TOKEN_PROGRAM_ID,
    discriminated=False,
    initialized_field="is_initialized",
)


class LoaderStateType(AccountType):
    """One variant of the upgradeable loader's bincode `UpgradeableLoaderState`.

    The variant tag takes the place of a discriminator; any other variant
    is rejected with VariantMismatch.
    """

    VARIANTS = ("Uninitialized", "Buffer", "Program", "ProgramData")

    def __init__(self, name: str, fields: Sequence[Tuple[str, str]]):
        super().__init__(name, fields, owner=BPF_LOADER_UPGRADEABLE_ID, discriminated=False)
        self.variant = self.VARIANTS.index(name)

    @property
    def header_size(self) -> int:
        return 4

    def decode(self, data: bytes) -> SimpleNamespace:
        if len(data) < 4:
            raise LayoutError(f"{self.name}: missing loader state tag")
        tag = struct.unpack_from("<I", data)[0]
        if tag >= len(self.VARIANTS):
            raise LayoutError(f"invalid loader state tag {tag}")
        if tag != self.variant:
            raise VariantMismatch(f"expected {self.name}, found {self.VARIANTS[tag]}")
        return self.deserialize(data[4:])

    def write(self, data: bytearray, value: SimpleNamespace) -> None:
        raw = struct.pack("<I", self.variant) + self.serialize(value)
        if len(data) < len(raw):
            raise LayoutError(f"{self.name}: account has {len(data)} bytes, need {len(raw)}")
        data[:len(raw)] = raw


PROGRAM_DATA = LoaderStateType(
    "ProgramData",
    [
        ("slot", "u64"),
        ("upgrade_authority_address", "Option<Pubkey>"),
    ],
)

BUILTIN_TYPES = {t.name: t for t in (TOKEN_ACCOUNT, MINT, PROGRAM_DATA)}
