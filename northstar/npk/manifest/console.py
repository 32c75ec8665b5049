"""Console permissions and quality of service settings."""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

_USIZE = 2**64 - 1


class Permission(str, enum.Enum):
    """A console feature that a client may be allowed to use."""

    SHUTDOWN = "shutdown"
    CONTAINERS = "containers"
    REPOSITORIES = "repositories"
    START = "start"
    KILL = "kill"
    INSTALL = "install"
    MOUNT = "mount"
    UMOUNT = "umount"
    UNINSTALL = "uninstall"
    CONTAINER_STATISTICS = "container_statistics"
    NOTIFICATIONS = "notifications"
    TOKEN = "token"
    IDENT = "ident"

    def __str__(self) -> str:
        return self.value


_ORDER = {permission: index for index, permission in enumerate(Permission)}


class Permissions(frozenset):
    """A set of console permissions; written as ``full`` when it holds them all."""

    def __new__(cls, permissions: Iterable[Permission | str] = ()) -> Permissions:
        return super().__new__(cls, (Permission(p) for p in permissions))

    @classmethod
    def full(cls) -> Permissions:
        """All permissions."""
        return cls(Permission)

    @classmethod
    def from_value(cls, value: Any) -> Permissions:
        """Read ``"full"`` or a sequence of permission names."""
        if isinstance(value, str):
            if value.strip() == "full":
                return cls.full()
            raise ValueError(f"invalid console permission: {value}")
        if isinstance(value, (list, tuple)):
            try:
                return cls(value)
            except ValueError as error:
                raise ValueError(f"invalid console permission: {error}") from None
        raise ValueError('expected "full" or a permission sequence')

    def _ordered(self) -> list[Permission]:
        return sorted(self, key=_ORDER.__getitem__)

    def is_full(self) -> bool:
        return len(self) == len(Permission)

    def to_value(self) -> str | list[str]:
        """``"full"`` when every permission is held, else a list of names."""
        if self.is_full():
            return "full"
        return [permission.value for permission in self._ordered()]

    def __str__(self) -> str:
        if self.is_full():
            return "full"
        return ", ".join(str(permission) for permission in self._ordered())

    def __repr__(self) -> str:
        return f"Permissions({[p.value for p in self._ordered()]!r})"


def _optional_size(data: Mapping, key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _USIZE:
        raise ValueError(f"{key}: expected an unsigned integer, got {value!r}")
    return value


_LIMIT_KEYS = (
    "max_requests_per_sec",
    "max_request_size",
    "max_npk_install_size",
    "npk_stream_timeout",
)


@dataclass
class Configuration:
    """Console permissions and request limits."""

    permissions: Permissions = field(default_factory=Permissions)
    max_requests_per_sec: int | None = None
    max_request_size: int | None = None
    max_npk_install_size: int | None = None
    npk_stream_timeout: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping) -> Configuration:
        if not isinstance(data, Mapping):
            raise ValueError(f"console: expected a mapping, got {type(data).__name__}")
        unknown = set(data) - {"permissions", *_LIMIT_KEYS}
        if unknown:
            raise ValueError(f"unknown field(s) in console configuration: {sorted(map(str, unknown))}")
        if "permissions" not in data:
            raise ValueError("missing field `permissions`")
        return cls(
            Permissions.from_value(data["permissions"]),
            **{key: _optional_size(data, key) for key in _LIMIT_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"permissions": self.permissions.to_value()}
        for key in _LIMIT_KEYS:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result