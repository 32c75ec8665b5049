"""Mount points of a container: bind, dev, persist, proc, resource and tmpfs."""

from __future__ import annotations

import enum
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Union

from northstar.common.name import Name
from northstar.common.version import VersionReq

_U64_MAX = 2**64 - 1


class MountOption(str, enum.Enum):
    """A single mount flag."""

    RW = "rw"
    NOEXEC = "noexec"
    NOSUID = "nosuid"
    NODEV = "nodev"
    REC = "rec"

    def __str__(self) -> str:
        return self.value


_ORDER = {option: index for index, option in enumerate(MountOption)}


def _option(text: str) -> MountOption:
    try:
        return MountOption(text)
    except ValueError:
        raise ValueError(f"invalid mount option {text}") from None


class MountOptions(frozenset):
    """A set of mount options, written as a comma separated list."""

    def __new__(cls, options: Iterable[MountOption | str] = ()) -> MountOptions:
        return super().__new__(cls, (_option(o) if not isinstance(o, MountOption) else o for o in options))

    @classmethod
    def parse(cls, text: str) -> MountOptions:
        """Parse ``rw,noexec,...``; blanks around options are ignored."""
        if not isinstance(text, str):
            raise ValueError(f"expected comma separated mount options, got {text!r}")
        stripped = text.strip()
        if not stripped:
            return cls()
        return cls(_option(piece.strip()) for piece in stripped.split(","))

    def _ordered(self) -> list[MountOption]:
        return sorted(self, key=_ORDER.__getitem__)

    def __str__(self) -> str:
        return ",".join(str(option) for option in self._ordered())

    def __repr__(self) -> str:
        return f"MountOptions({[o.value for o in self._ordered()]!r})"


@dataclass(frozen=True)
class Bind:
    """Bind mount of a host path."""

    host: PurePosixPath
    options: MountOptions = field(default_factory=MountOptions)


@dataclass(frozen=True)
class Resource:
    """Mount of a directory from a resource container."""

    name: Name
    version: VersionReq
    dir: PurePosixPath
    options: MountOptions = field(default_factory=MountOptions)


@dataclass(frozen=True)
class Tmpfs:
    """A tmpfs of ``size`` bytes."""

    size: int


@dataclass(frozen=True)
class Dev:
    """A minimal dev tree."""


@dataclass(frozen=True)
class Persist:
    """A read-write host directory dedicated to the container."""


@dataclass(frozen=True)
class Proc:
    """A proc file system."""


Mount = Union[Bind, Dev, Persist, Proc, Resource, Tmpfs]

_KIB = 1024
_UNITS = {
    "": 1,
    "b": 1,
    "k": 10**3,
    "kb": 10**3,
    "ki": _KIB,
    "kib": _KIB,
    "m": 10**6,
    "mb": 10**6,
    "mi": _KIB**2,
    "mib": _KIB**2,
    "g": 10**9,
    "gb": 10**9,
    "gi": _KIB**3,
    "gib": _KIB**3,
    "t": 10**12,
    "tb": 10**12,
    "ti": _KIB**4,
    "tib": _KIB**4,
    "p": 10**15,
    "pb": 10**15,
    "pi": _KIB**5,
    "pib": _KIB**5,
    "e": 10**18,
    "eb": 10**18,
    "ei": _KIB**6,
    "eib": _KIB**6,
}

_SIZE_RE = re.compile(r"([0-9]+)\s*([A-Za-z]*)")


def parse_tmpfs_size(value: Any) -> int:
    """Read a size in bytes from a number or a string such as ``100MB``."""
    if isinstance(value, bool):
        raise ValueError(f"invalid tmpfs size: {value!r}")
    if isinstance(value, int):
        if not 0 <= value <= _U64_MAX:
            raise ValueError(f"tmpfs size out of range: {value}")
        return value
    if not isinstance(value, str):
        raise ValueError(f"expected a number of bytes or a size string, got {value!r}")
    text = value.strip()
    if not text:
        raise ValueError("empty tmpfs size")
    match = _SIZE_RE.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid tmpfs size: {value!r}")
    unit = _UNITS.get(match[2].lower())
    if unit is None:
        raise ValueError(f"invalid tmpfs size unit: {match[2]!r}")
    size = int(match[1]) * unit
    if size > _U64_MAX:
        raise ValueError(f"tmpfs size out of range: {value!r}")
    return size


def _path(data: Mapping, key: str) -> PurePosixPath:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(f"{key}: expected a path, got {value!r}")
    return PurePosixPath(value)


def _options(data: Mapping) -> MountOptions:
    if "options" not in data:
        return MountOptions()
    return MountOptions.parse(data["options"])


def _deny_unknown(data: Mapping, allowed: set[str], kind: str) -> None:
    unknown = set(data) - allowed - {"type"}
    if unknown:
        raise ValueError(f"unknown field(s) in {kind} mount: {sorted(map(str, unknown))}")


def parse_mount(data: Any) -> Mount:
    """Read a mount from its mapping form, selected by the ``type`` key."""
    if not isinstance(data, Mapping):
        raise ValueError(f"mount: expected a mapping, got {type(data).__name__}")
    if "type" not in data:
        raise ValueError("missing field `type`")
    match data["type"]:
        case "bind":
            _deny_unknown(data, {"host", "options"}, "bind")
            return Bind(_path(data, "host"), _options(data))
        case "dev":
            return Dev()
        case "persist":
            return Persist()
        case "proc":
            return Proc()
        case "resource":
            _deny_unknown(data, {"name", "version", "dir", "options"}, "resource")
            for key in ("name", "version"):
                if key not in data:
                    raise ValueError(f"missing field `{key}`")
                if not isinstance(data[key], str):
                    raise ValueError(f"{key}: expected a string, got {data[key]!r}")
            return Resource(
                Name(data["name"]),
                VersionReq.parse(data["version"]),
                _path(data, "dir"),
                _options(data),
            )
        case "tmpfs":
            if "size" not in data:
                raise ValueError("missing field `size`")
            return Tmpfs(parse_tmpfs_size(data["size"]))
        case other:
            raise ValueError(f"unknown mount type {other!r}")


def mount_to_dict(mount: Mount) -> dict[str, Any]:
    """Write a mount in its mapping form."""
    match mount:
        case Bind(host=host, options=options):
            result: dict[str, Any] = {"type": "bind", "host": str(host)}
            if options:
                result["options"] = str(options)
            return result
        case Resource(name=name, version=version, dir=directory, options=options):
            result = {
                "type": "resource",
                "name": str(name),
                "version": str(version),
                "dir": str(directory),
            }
            if options:
                result["options"] = str(options)
            return result
        case Tmpfs(size=size):
            return {"type": "tmpfs", "size": size}
        case Dev():
            return {"type": "dev"}
        case Persist():
            return {"type": "persist"}
        case Proc():
            return {"type": "proc"}
    raise TypeError(f"not a mount: {mount!r}")