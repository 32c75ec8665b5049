"""dm-verity superblock and hash tree generation for file system images."""

from __future__ import annotations

import hashlib
import io
import os
import struct
import uuid as uuid_module
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

SHA256_SIZE = 32
BLOCK_SIZE = 4096

HEADER = b"verity"
ALGORITHM = b"sha256"
VERITY_VERSION = 1

# signature, version, hash type, uuid, algorithm, data block size,
# hash block size, data blocks, salt size, padding, salt
_LAYOUT = struct.Struct("<8sII16s32sIIQH6x256s")


class VerityError(Exception):
    """A verity header is invalid or the hash tree cannot be built."""


@dataclass(frozen=True)
class VerityHeader:
    """The dm-verity superblock."""

    header: bytes
    version: int
    hash_type: int
    uuid: bytes
    algorithm: bytes
    data_block_size: int
    hash_block_size: int
    data_blocks: int
    salt_size: int
    salt: bytes

    @classmethod
    def create(
        cls, uuid: bytes | uuid_module.UUID, data_blocks: int, salt: bytes
    ) -> VerityHeader:
        """Build a version 1 sha256 superblock for ``data_blocks`` blocks."""
        raw_uuid = uuid.bytes if isinstance(uuid, uuid_module.UUID) else bytes(uuid)
        if len(raw_uuid) != 16:
            raise ValueError("uuid must be 16 bytes long")
        if len(salt) > 256:
            raise ValueError("salt must not be longer than 256 bytes")
        return cls(
            header=HEADER.ljust(8, b"\0"),
            version=VERITY_VERSION,
            hash_type=1,
            uuid=raw_uuid,
            algorithm=ALGORITHM.ljust(32, b"\0"),
            data_block_size=BLOCK_SIZE,
            hash_block_size=BLOCK_SIZE,
            data_blocks=data_blocks,
            salt_size=len(salt),
            salt=bytes(salt).ljust(256, b"\0"),
        )

    @classmethod
    def from_bytes(cls, src: BinaryIO | bytes) -> VerityHeader:
        """Read a superblock from a binary stream or a bytes object."""
        stream = io.BytesIO(src) if isinstance(src, (bytes, bytearray, memoryview)) else src
        try:
            raw = stream.read(_LAYOUT.size)
        except OSError as error:
            raise VerityError("failed to read verity header") from error
        if raw is None or len(raw) < _LAYOUT.size:
            raise VerityError("failed to read verity header")
        return cls(*_LAYOUT.unpack(raw))

    def to_bytes(self) -> bytes:
        """The superblock padded with zeros to one block."""
        raw = _LAYOUT.pack(
            self.header,
            self.version,
            self.hash_type,
            self.uuid,
            self.algorithm,
            self.data_block_size,
            self.hash_block_size,
            self.data_blocks,
            self.salt_size,
            self.salt,
        )
        return raw.ljust(BLOCK_SIZE, b"\0")

    def check(self) -> None:
        """Raise VerityError unless this is a supported superblock."""
        if not self.header.startswith(HEADER):
            raise VerityError("invalid verity header")
        if self.version != VERITY_VERSION:
            raise VerityError(f"unsupported verity version {self.version}")
        if not self.algorithm.startswith(ALGORITHM):
            raise VerityError("unsupported verity algorithm")


def round_up_to_multiple(number: int, multiple: int) -> int:
    """Round ``number`` up to the next multiple of ``multiple``."""
    return number + (multiple - number % multiple) % multiple


def calculate_hash_tree_level_offsets(
    image_size: int, block_size: int, digest_size: int
) -> tuple[list[int], int]:
    """Offsets of each hash tree level within the tree, and the tree's size.

    Level 0 hashes the image itself; the top level is stored first.
    """
    level_sizes: list[int] = []
    remaining = image_size
    while remaining > block_size:
        num_blocks = -(-remaining // block_size)
        level_size = round_up_to_multiple(num_blocks * digest_size, block_size)
        level_sizes.append(level_size)
        remaining = level_size
    offsets = [sum(level_sizes[n + 1 :]) for n in range(len(level_sizes))]
    return offsets, sum(level_sizes)


def _block_digest(salt: bytes, block: bytes) -> bytes:
    return hashlib.sha256(salt + block).digest()


def _read_blocks(image: BinaryIO, size: int):
    for offset in range(0, size, BLOCK_SIZE):
        try:
            image.seek(offset)
            block = image.read(BLOCK_SIZE)
        except OSError as error:
            raise VerityError("failed to read from fs-image") from error
        if len(block) != BLOCK_SIZE:
            raise VerityError("failed to read from fs-image")
        yield block


def generate_hash_tree(
    fsimg: str | os.PathLike,
    image_size: int,
    level_offsets: list[int],
    tree_size: int,
    salt: bytes | None = None,
) -> tuple[bytes, bytes, bytes]:
    """Hash the first ``image_size`` bytes of ``fsimg`` into a salted tree.

    Returns the salt, the root hash and the hash tree. A random salt is
    chosen when none is given.
    """
    path = Path(fsimg)
    try:
        image = path.open("rb")
    except OSError as error:
        raise VerityError(f"Cannot open '{path}'") from error

    with image:
        if image_size % BLOCK_SIZE != 0:
            raise VerityError(
                "failed to generate verity hash tree. The image size "
                f"{image_size} is not a multiple of the block size {BLOCK_SIZE}"
            )
        if image_size == 0:
            raise VerityError("failed to generate verity hash tree: the image is empty")
        if salt is None:
            salt = os.urandom(SHA256_SIZE)

        hash_tree = bytearray(tree_size)
        hashes = [_block_digest(salt, block) for block in _read_blocks(image, image_size)]
        level_num = 0
        while len(hashes) > 1:
            level = b"".join(hashes)
            level += bytes(round_up_to_multiple(len(level), BLOCK_SIZE) - len(level))
            offset = level_offsets[level_num]
            hash_tree[offset : offset + len(level)] = level
            hashes = [
                _block_digest(salt, level[start : start + BLOCK_SIZE])
                for start in range(0, len(level), BLOCK_SIZE)
            ]
            level_num += 1

    return salt, hashes[0], bytes(hash_tree)


def append_dm_verity_block(fsimg: str | os.PathLike, fsimg_size: int) -> bytes:
    """Append a verity superblock and hash tree to ``fsimg``; return the root hash."""
    offsets, tree_size = calculate_hash_tree_level_offsets(fsimg_size, BLOCK_SIZE, SHA256_SIZE)
    salt, root_hash, hash_tree = generate_hash_tree(fsimg, fsimg_size, offsets, tree_size)
    header = VerityHeader.create(uuid_module.uuid4(), fsimg_size // BLOCK_SIZE, salt)
    path = Path(fsimg)
    try:
        image = path.open("ab")
    except OSError as error:
        raise VerityError(f"Cannot open '{path}'") from error
    with image:
        try:
            image.write(header.to_bytes())
        except OSError as error:
            raise VerityError("failed to write verity header") from error
        try:
            image.write(hash_tree)
        except OSError as error:
            raise VerityError("failed to write verity hash tree") from error
    return root_hash