"""Control group configuration of a container."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

_U16 = (0, 2**16 - 1)
_U64 = (0, 2**64 - 1)
_I64 = (-(2**63), 2**63 - 1)


def _mapping(data: Any, what: str) -> Mapping:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what}: expected a mapping, got {type(data).__name__}")
    return data


def _int(value: Any, key: str, bounds: tuple[int, int]) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key}: expected an integer, got {value!r}")
    low, high = bounds
    if not low <= value <= high:
        raise ValueError(f"{key}: value {value} out of range")
    return value


def _required_int(data: Mapping, key: str, bounds: tuple[int, int]) -> int:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    return _int(data[key], key, bounds)


def _optional_int(data: Mapping, key: str, bounds: tuple[int, int]) -> int | None:
    value = data.get(key)
    return None if value is None else _int(value, key, bounds)


def _string(value: Any, key: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    raise ValueError(f"{key}: expected a string, got {value!r}")


def _optional_string(data: Mapping, key: str) -> str | None:
    value = data.get(key)
    return None if value is None else _string(value, key)


def _attrs(data: Mapping) -> dict[str, str]:
    value = data.get("attrs")
    if value is None:
        return {}
    return {
        _string(k, "attrs"): _string(v, "attrs")
        for k, v in _mapping(value, "attrs").items()
    }


def _required_list(data: Mapping, key: str, item_type: type) -> list:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    value = data[key]
    if not isinstance(value, list):
        raise ValueError(f"{key}: expected a sequence, got {value!r}")
    return [item_type.from_dict(item) for item in value]


@dataclass
class BlkIoDeviceResource:
    """Per device weights."""

    major: int = 0
    minor: int = 0
    weight: int | None = None
    leaf_weight: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping) -> BlkIoDeviceResource:
        data = _mapping(data, "weight device")
        return cls(
            major=_required_int(data, "major", _U64),
            minor=_required_int(data, "minor", _U64),
            weight=_optional_int(data, "weight", _U16),
            leaf_weight=_optional_int(data, "leaf_weight", _U16),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "major": self.major,
            "minor": self.minor,
            "weight": self.weight,
            "leaf_weight": self.leaf_weight,
        }


@dataclass
class BlkIoDeviceThrottleResource:
    """Throttle of a device in bytes or IO operations per second."""

    major: int = 0
    minor: int = 0
    rate: int = 0

    @classmethod
    def from_dict(cls, data: Mapping) -> BlkIoDeviceThrottleResource:
        data = _mapping(data, "throttle device")
        return cls(
            major=_required_int(data, "major", _U64),
            minor=_required_int(data, "minor", _U64),
            rate=_required_int(data, "rate", _U64),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"major": self.major, "minor": self.minor, "rate": self.rate}


_THROTTLE_KEYS = (
    "throttle_read_bps_device",
    "throttle_read_iops_device",
    "throttle_write_bps_device",
    "throttle_write_iops_device",
)


@dataclass
class BlkIoResources:
    """Block IO controller settings."""

    weight: int | None = None
    leaf_weight: int | None = None
    weight_device: list[BlkIoDeviceResource] = field(default_factory=list)
    throttle_read_bps_device: list[BlkIoDeviceThrottleResource] = field(default_factory=list)
    throttle_read_iops_device: list[BlkIoDeviceThrottleResource] = field(default_factory=list)
    throttle_write_bps_device: list[BlkIoDeviceThrottleResource] = field(default_factory=list)
    throttle_write_iops_device: list[BlkIoDeviceThrottleResource] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping) -> BlkIoResources:
        data = _mapping(data, "blkio")
        throttles = {
            key: _required_list(data, key, BlkIoDeviceThrottleResource) for key in _THROTTLE_KEYS
        }
        return cls(
            weight=_optional_int(data, "weight", _U16),
            leaf_weight=_optional_int(data, "leaf_weight", _U16),
            weight_device=_required_list(data, "weight_device", BlkIoDeviceResource),
            **throttles,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "weight": self.weight,
            "leaf_weight": self.leaf_weight,
            "weight_device": [device.to_dict() for device in self.weight_device],
        }
        for key in _THROTTLE_KEYS:
            result[key] = [device.to_dict() for device in getattr(self, key)]
        return result


@dataclass
class CpuResources:
    """CPU and cpuset controller settings."""

    cpus: str | None = None
    mems: str | None = None
    shares: int | None = None
    quota: int | None = None
    period: int | None = None
    realtime_runtime: int | None = None
    realtime_period: int | None = None
    attrs: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping) -> CpuResources:
        data = _mapping(data, "cpu")
        return cls(
            cpus=_optional_string(data, "cpus"),
            mems=_optional_string(data, "mems"),
            shares=_optional_int(data, "shares", _U64),
            quota=_optional_int(data, "quota", _I64),
            period=_optional_int(data, "period", _U64),
            realtime_runtime=_optional_int(data, "realtime_runtime", _I64),
            realtime_period=_optional_int(data, "realtime_period", _U64),
            attrs=_attrs(data),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "cpus": self.cpus,
            "mems": self.mems,
            "shares": self.shares,
            "quota": self.quota,
            "period": self.period,
            "realtime_runtime": self.realtime_runtime,
            "realtime_period": self.realtime_period,
        }
        if self.attrs:
            result["attrs"] = dict(self.attrs)
        return result


@dataclass
class MemoryResources:
    """Memory controller settings."""

    kernel_memory_limit: int | None = None
    memory_hard_limit: int | None = None
    memory_soft_limit: int | None = None
    kernel_tcp_memory_limit: int | None = None
    memory_swap_limit: int | None = None
    swappiness: int | None = None
    attrs: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping) -> MemoryResources:
        data = _mapping(data, "memory")
        return cls(
            kernel_memory_limit=_optional_int(data, "kernel_memory_limit", _I64),
            memory_hard_limit=_optional_int(data, "memory_hard_limit", _I64),
            memory_soft_limit=_optional_int(data, "memory_soft_limit", _I64),
            kernel_tcp_memory_limit=_optional_int(data, "kernel_tcp_memory_limit", _I64),
            memory_swap_limit=_optional_int(data, "memory_swap_limit", _I64),
            swappiness=_optional_int(data, "swappiness", _U64),
            attrs=_attrs(data),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "kernel_memory_limit": self.kernel_memory_limit,
            "memory_hard_limit": self.memory_hard_limit,
            "memory_soft_limit": self.memory_soft_limit,
            "kernel_tcp_memory_limit": self.kernel_tcp_memory_limit,
            "memory_swap_limit": self.memory_swap_limit,
            "swappiness": self.swappiness,
        }
        if self.attrs:
            result["attrs"] = dict(self.attrs)
        return result


@dataclass
class CGroups:
    """Control group configuration: block IO, CPU and memory controllers."""

    blkio: BlkIoResources | None = None
    cpu: CpuResources | None = None
    memory: MemoryResources | None = None

    @classmethod
    def from_dict(cls, data: Mapping) -> CGroups:
        data = _mapping(data, "cgroups")
        blkio, cpu, memory = (data.get(key) for key in ("blkio", "cpu", "memory"))
        return cls(
            blkio=None if blkio is None else BlkIoResources.from_dict(blkio),
            cpu=None if cpu is None else CpuResources.from_dict(cpu),
            memory=None if memory is None else MemoryResources.from_dict(memory),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "blkio": None if self.blkio is None else self.blkio.to_dict(),
            "cpu": None if self.cpu is None else self.cpu.to_dict(),
            "memory": None if self.memory is None else self.memory.to_dict(),
        }