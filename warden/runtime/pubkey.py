"""Addresses and program derived addresses (PDAs)."""
from __future__ import annotations

import hashlib
import itertools
from typing import List, Sequence, Tuple, Union

from warden.runtime.errors import ProgramError

PUBKEY_BYTES = 32
MAX_SEEDS = 16
MAX_SEED_LEN = 32
PDA_MARKER = b"ProgramDerivedAddress"

_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_B58_INDEX = {c: i for i, c in enumerate(_B58_ALPHABET)}

# ed25519 curve parameters
_P = 2**255 - 19
_D = (-121665 * pow(121666, -1, _P)) % _P

_unique = itertools.count(1)


def b58encode(raw: bytes) -> str:
    n = int.from_bytes(raw, "big")
    out = []
    while n:
        n, rem = divmod(n, 58)
        out.append(_B58_ALPHABET[rem])
    pad = len(raw) - len(raw.lstrip(b"\0"))
    return "1" * pad + "".join(reversed(out))


def b58decode(text: str) -> bytes:
    n = 0
    for ch in text:
        try:
            n = n * 58 + _B58_INDEX[ch]
        except KeyError:
            raise ValueError(f"invalid base58 character {ch!r}") from None
    body = n.to_bytes((n.bit_length() + 7) // 8, "big") if n else b""
    pad = len(text) - len(text.lstrip("1"))
    return b"\0" * pad + body


class Pubkey:
    """A 32 byte account address. Immutable and hashable."""

    __slots__ = ("_raw",)

    def __init__(self, raw: Union[bytes, bytearray, Sequence[int]]):
        raw = bytes(raw)
        if len(raw) != PUBKEY_BYTES:
            raise ValueError(f"pubkey must be {PUBKEY_BYTES} bytes, got {len(raw)}")
        object.__setattr__(self, "_raw", raw)

    def __setattr__(self, name, value):
        raise AttributeError("Pubkey is immutable")

    @classmethod
    def from_string(cls, text: str) -> "Pubkey":
        return cls(b58decode(text))

    @classmethod
    def default(cls) -> "Pubkey":
        return cls(bytes(PUBKEY_BYTES))

    @classmethod
    def new_unique(cls) -> "Pubkey":
        """A fresh address, distinct from every other one handed out in this process."""
        n = next(_unique)
        return cls(n.to_bytes(8, "big") + bytes(PUBKEY_BYTES - 8))

    def __bytes__(self) -> bytes:
        return self._raw

    def __eq__(self, other):
        if isinstance(other, Pubkey):
            return self._raw == other._raw
        return NotImplemented

    def __hash__(self):
        return hash(self._raw)

    def __str__(self):
        return b58encode(self._raw)

    def __repr__(self):
        return f"Pubkey({self})"

    def is_on_curve(self) -> bool:
        return is_on_curve(self._raw)


SYSTEM_PROGRAM_ID = Pubkey.default()
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")
RENT_SYSVAR_ID = Pubkey.from_string("SysvarRent111111111111111111111111111111111")
BPF_LOADER_UPGRADEABLE_ID = Pubkey.from_string("BPFLoaderUpgradeab1e11111111111111111111111")


def is_on_curve(raw: bytes) -> bool:
    """True if `raw` decompresses to a point on the ed25519 curve."""
    y = (int.from_bytes(raw, "little") & ((1 << 255) - 1)) % _P
    yy = y * y % _P
    u = (yy - 1) % _P
    v = (_D * yy + 1) % _P
    xx = u * pow(v, -1, _P) % _P
    if xx == 0:
        return True
    return pow(xx, (_P - 1) // 2, _P) == 1


def create_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Pubkey:
    """Derive an address from `seeds` (bump included) without searching.

    Raises:
        ProgramError: MaxSeedLengthExceeded on too many or too long seeds,
            InvalidSeeds when the result lies on the curve.
    """
    if len(seeds) > MAX_SEEDS:
        raise ProgramError("MaxSeedLengthExceeded", f"{len(seeds)} seeds")
    h = hashlib.sha256()
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise ProgramError("MaxSeedLengthExceeded", f"seed of {len(seed)} bytes")
        h.update(seed)
    h.update(bytes(program_id))
    h.update(PDA_MARKER)
    digest = h.digest()
    if is_on_curve(digest):
        raise ProgramError("InvalidSeeds", "derived address is on the curve")
    return Pubkey(digest)


def find_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Tuple[Pubkey, int]:
    """Search bumps from 255 down; the first off-curve result is canonical."""
    seeds = list(seeds)
    for bump in range(255, 0, -1):
        try:
            return create_program_address(seeds + [bytes([bump])], program_id), bump
        except ProgramError as e:
            if e.kind != "InvalidSeeds":
                raise
    raise ProgramError("InvalidSeeds", "unable to find a viable program address bump")


def create_with_seed(base: Pubkey, seed: str, owner: Pubkey) -> Pubkey:
    raw_seed = seed.encode("utf-8")
    if len(raw_seed) > MAX_SEED_LEN:
        raise ProgramError("MaxSeedLengthExceeded", f"seed of {len(raw_seed)} bytes")
    return Pubkey(hashlib.sha256(bytes(base) + raw_seed + bytes(owner)).digest())


def state_address(program_id: Pubkey) -> Pubkey:
    """Canonical address of a program's legacy state account."""
    base, _ = find_program_address([], program_id)
    return create_with_seed(base, "unversioned", program_id)


def get_associated_token_address(wallet: Pubkey, mint: Pubkey) -> Pubkey:
    return find_program_address(
        [bytes(wallet), bytes(TOKEN_PROGRAM_ID), bytes(mint)],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )[0]


def seed_bytes(value) -> bytes:
    """Coerce a seed expression result to bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, Pubkey):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, bool):
        return bytes([int(value)])
    if isinstance(value, int):
        if not 0 <= value <= 255:
            raise TypeError(f"integer seed {value} does not fit in one byte")
        return bytes([value])
    if hasattr(value, "key") and isinstance(value.key, Pubkey):
        return bytes(value.key)
    raise TypeError(f"cannot use {type(value).__name__} as a seed")


def seed_list(values) -> List[bytes]:
    return [seed_bytes(v) for v in values]
