"""Value types of a container manifest: autostart, IO, limits, capabilities, seccomp, SELinux."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from northstar.common.non_nul_string import NonNulString

_U64_MAX = 2**64 - 1


def _mapping(data: Any, what: str) -> Mapping:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what}: expected a mapping, got {type(data).__name__}")
    return data


def _deny_unknown(data: Mapping, allowed: set[str], what: str) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"unknown field(s) in {what}: {sorted(map(str, unknown))}")


def _uint(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U64_MAX:
        raise ValueError(f"{key}: expected an unsigned integer, got {value!r}")
    return value


def _optional_uint(data: Mapping, key: str) -> int | None:
    value = data.get(key)
    return None if value is None else _uint(value, key)


class Autostart(str, enum.Enum):
    """How a container started with the runtime is treated when it fails."""

    RELAXED = "relaxed"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class Output(str, enum.Enum):
    """Where stdout or stderr of a container goes."""

    DISCARD = "discard"
    PIPE = "pipe"

    def __str__(self) -> str:
        return self.value


@dataclass
class Io:
    """Redirection of stdout and stderr."""

    stdout: Output = Output.DISCARD
    stderr: Output = Output.DISCARD

    @classmethod
    def from_dict(cls, data: Mapping) -> Io:
        data = _mapping(data, "io")
        _deny_unknown(data, {"stdout", "stderr"}, "io")
        for key in ("stdout", "stderr"):
            if key not in data:
                raise ValueError(f"missing field `{key}`")
        return cls(Output(data["stdout"]), Output(data["stderr"]))

    def to_dict(self) -> dict[str, str]:
        return {"stdout": self.stdout.value, "stderr": self.stderr.value}


class Level(str, enum.Enum):
    """Log level; read in lower case or fully upper case."""

    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"
    TRACE = "trace"

    @classmethod
    def _missing_(cls, value: object) -> Level | None:
        if isinstance(value, str):
            for member in cls:
                if member.value.upper() == value:
                    return member
        return None

    def __str__(self) -> str:
        return self.value


class RLimitResource(str, enum.Enum):
    """A resource limited with setrlimit(2)."""

    AS = "as"
    CORE = "core"
    CPU = "cpu"
    DATA = "data"
    FSIZE = "fsize"
    LOCKS = "locks"
    MEMLOCK = "memlock"
    MSGQUEUE = "msgqueue"
    NICE = "nice"
    NOFILE = "nofile"
    NPROC = "nproc"
    RSS = "rss"
    RTPRIO = "rtprio"
    RTTIME = "rttime"
    SIGPENDING = "sigpending"
    STACK = "stack"

    def __str__(self) -> str:
        return self.value


@dataclass
class RLimitValue:
    """Soft and hard limit of a resource; None means unlimited."""

    soft: int | None = None
    hard: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping) -> RLimitValue:
        data = _mapping(data, "rlimit")
        return cls(_optional_uint(data, "soft"), _optional_uint(data, "hard"))

    def to_dict(self) -> dict[str, int | None]:
        return {"soft": self.soft, "hard": self.hard}


class Capability(str, enum.Enum):
    """A Linux capability."""

    CAP_CHOWN = "CAP_CHOWN"
    CAP_DAC_OVERRIDE = "CAP_DAC_OVERRIDE"
    CAP_DAC_READ_SEARCH = "CAP_DAC_READ_SEARCH"
    CAP_FOWNER = "CAP_FOWNER"
    CAP_FSETID = "CAP_FSETID"
    CAP_KILL = "CAP_KILL"
    CAP_SETGID = "CAP_SETGID"
    CAP_SETUID = "CAP_SETUID"
    CAP_SETPCAP = "CAP_SETPCAP"
    CAP_LINUX_IMMUTABLE = "CAP_LINUX_IMMUTABLE"
    CAP_NET_BIND_SERVICE = "CAP_NET_BIND_SERVICE"
    CAP_NET_BROADCAST = "CAP_NET_BROADCAST"
    CAP_NET_ADMIN = "CAP_NET_ADMIN"
    CAP_NET_RAW = "CAP_NET_RAW"
    CAP_IPC_LOCK = "CAP_IPC_LOCK"
    CAP_IPC_OWNER = "CAP_IPC_OWNER"
    CAP_SYS_MODULE = "CAP_SYS_MODULE"
    CAP_SYS_RAWIO = "CAP_SYS_RAWIO"
    CAP_SYS_CHROOT = "CAP_SYS_CHROOT"
    CAP_SYS_PTRACE = "CAP_SYS_PTRACE"
    CAP_SYS_PACCT = "CAP_SYS_PACCT"
    CAP_SYS_ADMIN = "CAP_SYS_ADMIN"
    CAP_SYS_BOOT = "CAP_SYS_BOOT"
    CAP_SYS_NICE = "CAP_SYS_NICE"
    CAP_SYS_RESOURCE = "CAP_SYS_RESOURCE"
    CAP_SYS_TIME = "CAP_SYS_TIME"
    CAP_SYS_TTY_CONFIG = "CAP_SYS_TTY_CONFIG"
    CAP_MKNOD = "CAP_MKNOD"
    CAP_LEASE = "CAP_LEASE"
    CAP_AUDIT_WRITE = "CAP_AUDIT_WRITE"
    CAP_AUDIT_CONTROL = "CAP_AUDIT_CONTROL"
    CAP_SETFCAP = "CAP_SETFCAP"
    CAP_MAC_OVERRIDE = "CAP_MAC_OVERRIDE"
    CAP_MAC_ADMIN = "CAP_MAC_ADMIN"
    CAP_SYSLOG = "CAP_SYSLOG"
    CAP_WAKE_ALARM = "CAP_WAKE_ALARM"
    CAP_BLOCK_SUSPEND = "CAP_BLOCK_SUSPEND"
    CAP_AUDIT_READ = "CAP_AUDIT_READ"
    CAP_PERFMON = "CAP_PERFMON"
    CAP_BPF = "CAP_BPF"
    CAP_CHECKPOINT_RESTORE = "CAP_CHECKPOINT_RESTORE"

    def __str__(self) -> str:
        return self.value


@dataclass
class SyscallArgRule:
    """Allows a syscall only for certain values of one of its arguments."""

    index: int
    values: list[int] | None = None
    mask: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping) -> SyscallArgRule:
        data = _mapping(data, "syscall argument rule")
        _deny_unknown(data, {"index", "values", "mask"}, "syscall argument rule")
        if "index" not in data:
            raise ValueError("missing field `index`")
        values = data.get("values")
        if values is not None:
            if not isinstance(values, list):
                raise ValueError(f"values: expected a sequence, got {values!r}")
            values = [_uint(value, "values") for value in values]
        return cls(_uint(data["index"], "index"), values, _optional_uint(data, "mask"))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"index": self.index}
        if self.values is not None:
            result["values"] = list(self.values)
        if self.mask is not None:
            result["mask"] = self.mask
        return result


@dataclass
class Selinux:
    """SELinux context of a container."""

    context: str

    @classmethod
    def from_dict(cls, data: Mapping) -> Selinux:
        data = _mapping(data, "selinux")
        _deny_unknown(data, {"context"}, "selinux")
        context = data.get("context")
        if not isinstance(context, str):
            raise ValueError(f"context: expected a string, got {context!r}")
        return cls(context)

    def to_dict(self) -> dict[str, str]:
        return {"context": self.context}


def _syscall_rule(name: str, value: Any) -> SyscallArgRule | None:
    if value == "any":
        return None
    if isinstance(value, Mapping) and set(value) == {"args"}:
        return SyscallArgRule.from_dict(value["args"])
    raise ValueError(f"invalid rule for syscall {name}: {value!r}")


@dataclass
class Seccomp:
    """Seccomp filter: a profile and an allow list of syscalls.

    In ``allow`` a value of None allows the syscall unconditionally.
    """

    profile: Any = None
    allow: dict[NonNulString, SyscallArgRule | None] | None = field(default=None)

    @classmethod
    def from_dict(cls, data: Mapping) -> Seccomp:
        data = _mapping(data, "seccomp")
        _deny_unknown(data, {"profile", "allow"}, "seccomp")
        allow = data.get("allow")
        if allow is not None:
            allow = {
                NonNulString(_syscall_name(name)): _syscall_rule(name, rule)
                for name, rule in _mapping(allow, "allow").items()
            }
        return cls(data.get("profile"), allow)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.profile is not None:
            result["profile"] = self.profile
        if self.allow is not None:
            result["allow"] = {
                str(name): "any" if rule is None else {"args": rule.to_dict()}
                for name, rule in self.allow.items()
            }
        return result


def _syscall_name(name: Any) -> str:
    if not isinstance(name, str):
        raise ValueError(f"syscall name must be a string, got {name!r}")
    return name