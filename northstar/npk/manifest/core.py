"""The container manifest: reading, writing and validation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import IO, Any

import yaml

from northstar.common.container import Container
from northstar.common.name import Name
from northstar.common.non_nul_string import InvalidNulChar, NonNulString
from northstar.common.version import Version
from northstar.npk.manifest.cgroups import CGroups
from northstar.npk.manifest.console import Configuration
from northstar.npk.manifest.mount import (
    Bind,
    Mount,
    MountOption,
    Resource,
    mount_to_dict,
    parse_mount,
)
from northstar.npk.manifest.spec import (
    Autostart,
    Capability,
    Io,
    RLimitResource,
    RLimitValue,
    Seccomp,
    Selinux,
)

VERSION = Version(0, 0, 1)
"""Version of the package format."""

RESERVED_ENV_VARIABLES = (
    "NORTHSTAR_NAME",
    "NORTHSTAR_VERSION",
    "NORTHSTAR_CONTAINER",
    "NORTHSTAR_CONSOLE",
)

XATTR_SIZE_MAX = 65536
MAX_ARG_INDEX = 5
MAX_ARG_VALUES = 50

_U16_MAX = 2**16 - 1

_FIELDS = (
    "name",
    "version",
    "console",
    "init",
    "args",
    "env",
    "uid",
    "gid",
    "mounts",
    "autostart",
    "cgroups",
    "seccomp",
    "selinux",
    "capabilities",
    "suppl_groups",
    "rlimits",
    "io",
    "custom",
)

_CAPABILITY_ORDER = {capability: index for index, capability in enumerate(Capability)}
_RLIMIT_ORDER = {resource: index for index, resource in enumerate(RLimitResource)}


class ManifestError(Exception):
    """Base class of all manifest errors."""


class InvalidManifestError(ManifestError):
    """The manifest was read but its content is not valid."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"invalid manifest: {reason}")
        self.reason = reason


class ManifestParseError(ManifestError):
    """The manifest text or data could not be read."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"failed to parse: {reason}")
        self.reason = reason


class _UniqueKeyLoader(yaml.SafeLoader):
    """Safe YAML loader that rejects duplicate mapping keys."""


def _construct_unique_mapping(loader: _UniqueKeyLoader, node: yaml.MappingNode) -> dict:
    loader.flatten_mapping(node)
    result: dict = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=True)
        try:
            duplicate = key in result
        except TypeError:
            raise yaml.constructor.ConstructorError(
                None, None, "found unhashable key", key_node.start_mark
            ) from None
        if duplicate:
            raise yaml.constructor.ConstructorError(
                None, None, f"duplicate key {key!r}", key_node.start_mark
            )
        result[key] = loader.construct_object(value_node, deep=True)
    return result


_UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG, _construct_unique_mapping
)


def _mapping(value: Any, key: str) -> Mapping:
    if not isinstance(value, Mapping):
        raise ValueError(f"{key}: expected a mapping, got {value!r}")
    return value


def _sequence(value: Any, key: str) -> list:
    if not isinstance(value, list):
        raise ValueError(f"{key}: expected a sequence, got {value!r}")
    return value


def _string(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{key}: expected a string, got {value!r}")
    return value


def _required(data: Mapping, key: str) -> Any:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    return data[key]


def _id(data: Mapping, key: str) -> int:
    value = _required(data, key)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U16_MAX:
        raise ValueError(f"{key}: expected an integer between 0 and {_U16_MAX}, got {value!r}")
    return value


def _path(value: Any, key: str) -> PurePosixPath:
    return PurePosixPath(_string(value, key))


def _present(data: Mapping, key: str) -> bool:
    return data.get(key) is not None


@dataclass(kw_only=True)
class Manifest:
    """Description of a container: identity, process settings and mounts."""

    name: Name
    version: Version
    console: Configuration | None = None
    init: PurePosixPath | None = None
    args: list[NonNulString] = field(default_factory=list)
    env: dict[NonNulString, NonNulString] = field(default_factory=dict)
    uid: int
    gid: int
    mounts: dict[PurePosixPath, Mount] = field(default_factory=dict)
    autostart: Autostart | None = None
    cgroups: CGroups | None = None
    seccomp: Seccomp | None = None
    selinux: Selinux | None = None
    capabilities: set[Capability] = field(default_factory=set)
    suppl_groups: list[NonNulString] = field(default_factory=list)
    rlimits: dict[RLimitResource, RLimitValue] = field(default_factory=dict)
    io: Io = field(default_factory=Io)
    custom: Any = None

    @classmethod
    def from_str(cls, text: str) -> Manifest:
        """Read a manifest from YAML text and verify it."""
        try:
            data = yaml.load(text, Loader=_UniqueKeyLoader)
        except yaml.YAMLError as error:
            raise ManifestParseError(str(error)) from error
        manifest = cls.from_dict(data)
        manifest.verify()
        return manifest

    @classmethod
    def from_reader(cls, reader: IO) -> Manifest:
        """Read a manifest from a YAML stream and verify it."""
        try:
            data = yaml.load(reader, Loader=_UniqueKeyLoader)
        except yaml.YAMLError as error:
            raise ManifestParseError(str(error)) from error
        manifest = cls.from_dict(data)
        manifest.verify()
        return manifest

    @classmethod
    def from_dict(cls, data: Any) -> Manifest:
        """Build a manifest from its mapping form without verifying it."""
        if not isinstance(data, Mapping):
            raise ManifestParseError(f"expected a mapping, got {type(data).__name__}")
        try:
            return cls._parse(data)
        except (ValueError, TypeError) as error:
            raise ManifestParseError(str(error)) from error

    @classmethod
    def _parse(cls, data: Mapping) -> Manifest:
        unknown = set(data) - set(_FIELDS)
        if unknown:
            raise ValueError(f"unknown field(s): {sorted(map(str, unknown))}")

        fields: dict[str, Any] = {
            "name": Name(_string(_required(data, "name"), "name")),
            "version": Version.parse(_string(_required(data, "version"), "version")),
            "uid": _id(data, "uid"),
            "gid": _id(data, "gid"),
            "custom": data.get("custom"),
        }
        if _present(data, "console"):
            fields["console"] = Configuration.from_dict(data["console"])
        if _present(data, "init"):
            fields["init"] = _path(data["init"], "init")
        if _present(data, "args"):
            fields["args"] = [
                NonNulString(_string(arg, "args")) for arg in _sequence(data["args"], "args")
            ]
        if _present(data, "env"):
            fields["env"] = {
                NonNulString(_string(key, "env")): NonNulString(_string(value, "env"))
                for key, value in _mapping(data["env"], "env").items()
            }
        if _present(data, "mounts"):
            mounts: dict[PurePosixPath, Mount] = {}
            for target, mount in _mapping(data["mounts"], "mounts").items():
                path = _path(target, "mounts")
                if path in mounts:
                    raise ValueError(f"duplicate mount point {path}")
                mounts[path] = parse_mount(mount)
            fields["mounts"] = mounts
        if _present(data, "autostart"):
            fields["autostart"] = Autostart(data["autostart"])
        if _present(data, "cgroups"):
            fields["cgroups"] = CGroups.from_dict(data["cgroups"])
        if _present(data, "seccomp"):
            fields["seccomp"] = Seccomp.from_dict(data["seccomp"])
        if _present(data, "selinux"):
            fields["selinux"] = Selinux.from_dict(data["selinux"])
        if _present(data, "capabilities"):
            fields["capabilities"] = {
                Capability(_string(capability, "capabilities"))
                for capability in _sequence(data["capabilities"], "capabilities")
            }
        if _present(data, "suppl_groups"):
            fields["suppl_groups"] = [
                NonNulString(_string(group, "suppl_groups"))
                for group in _sequence(data["suppl_groups"], "suppl_groups")
            ]
        if _present(data, "rlimits"):
            fields["rlimits"] = {
                RLimitResource(_string(resource, "rlimits")): RLimitValue.from_dict(value)
                for resource, value in _mapping(data["rlimits"], "rlimits").items()
            }
        if _present(data, "io"):
            fields["io"] = Io.from_dict(data["io"])
        return cls(**fields)

    def to_dict(self) -> dict[str, Any]:
        """The mapping form; empty and unset entries are left out."""
        result: dict[str, Any] = {"name": str(self.name), "version": str(self.version)}
        if self.console is not None:
            result["console"] = self.console.to_dict()
        if self.init is not None:
            result["init"] = str(self.init)
        if self.args:
            result["args"] = [str(arg) for arg in self.args]
        if self.env:
            result["env"] = {str(key): str(value) for key, value in self.env.items()}
        result["uid"] = self.uid
        result["gid"] = self.gid
        if self.mounts:
            result["mounts"] = {
                str(path): mount_to_dict(mount)
                for path, mount in sorted(self.mounts.items(), key=lambda item: item[0].parts)
            }
        if self.autostart is not None:
            result["autostart"] = self.autostart.value
        if self.cgroups is not None:
            result["cgroups"] = self.cgroups.to_dict()
        if self.seccomp is not None:
            result["seccomp"] = self.seccomp.to_dict()
        if self.selinux is not None:
            result["selinux"] = self.selinux.to_dict()
        if self.capabilities:
            result["capabilities"] = [
                capability.value
                for capability in sorted(self.capabilities, key=_CAPABILITY_ORDER.__getitem__)
            ]
        if self.suppl_groups:
            result["suppl_groups"] = [str(group) for group in self.suppl_groups]
        if self.rlimits:
            result["rlimits"] = {
                resource.value: value.to_dict()
                for resource, value in sorted(
                    self.rlimits.items(), key=lambda item: _RLIMIT_ORDER[item[0]]
                )
            }
        if self.io != Io():
            result["io"] = self.io.to_dict()
        if self.custom is not None:
            result["custom"] = self.custom
        return result

    def to_writer(self, writer: IO) -> None:
        """Write the manifest as YAML to a text stream."""
        yaml.safe_dump(self.to_dict(), writer, sort_keys=False)

    def __str__(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    def container(self) -> Container:
        """The container this manifest describes."""
        return Container(self.name, self.version)

    def verify(self) -> None:
        """Raise InvalidManifestError if the manifest is not consistent."""
        if self.init is not None:
            try:
                NonNulString(str(self.init))
            except InvalidNulChar:
                raise InvalidManifestError(
                    "init path must be a string without zero bytes"
                ) from None
        elif (
            self.args
            or self.env
            or self.autostart is not None
            or self.cgroups is not None
            or self.seccomp is not None
            or self.capabilities
            or self.suppl_groups
        ):
            raise InvalidManifestError(
                "resource containers must not define any of the following manifest entries:"
                "args, env, autostart, cgroups, seccomp, capabilities, suppl_groups, io"
            )

        if self.uid == 0:
            raise InvalidManifestError("invalid uid of 0")
        if self.gid == 0:
            raise InvalidManifestError("invalid gid of 0")

        if any(key in self.env for key in RESERVED_ENV_VARIABLES):
            raise InvalidManifestError("invalid environment: reserved variable name")

        self._verify_mounts()
        self._verify_selinux()
        self._verify_seccomp()

    def _verify_mounts(self) -> None:
        binds = sorted(
            (path for path, mount in self.mounts.items() if isinstance(mount, Bind)),
            key=lambda path: path.parts,
        )
        previous: tuple[str, ...] = ("/",)
        for path in binds:
            if not path.is_absolute():
                raise InvalidManifestError("mount points must not be relative")
            current = path.parts
            # Two paths that only share the root do not overlap.
            if 1 < len(previous) <= len(current) and current[: len(previous)] == previous:
                raise InvalidManifestError("mount points must not overlap")
            previous = current

        for mount in self.mounts.values():
            if isinstance(mount, Resource) and MountOption.REC in mount.options:
                raise InvalidManifestError("non bind mounts must not be recursive")

    def _verify_selinux(self) -> None:
        if self.selinux is None:
            return
        context = self.selinux.context
        if len(context.encode("utf-8", "surrogatepass")) >= XATTR_SIZE_MAX:
            raise InvalidManifestError(
                f"Selinux context is too long. Maximum length is {XATTR_SIZE_MAX}"
            )
        if not all((c.isascii() and c.isalnum()) or c in ":_" for c in context):
            raise InvalidManifestError(
                "Selinux context must consist of alphanumeric ASCII characters, ':' or '_'"
            )

    def _verify_seccomp(self) -> None:
        if self.seccomp is None or self.seccomp.allow is None:
            return
        for rule in self.seccomp.allow.values():
            if rule is None:
                continue
            if rule.index > MAX_ARG_INDEX:
                raise InvalidManifestError(
                    f"Seccomp syscall argument index must be {MAX_ARG_INDEX} or less"
                )
            if rule.values is None and rule.mask is None:
                raise InvalidManifestError(
                    "Either 'values' or 'mask' must be defined in seccomp syscall argument filter"
                )
            if rule.values is not None and len(rule.values) > MAX_ARG_VALUES:
                raise InvalidManifestError(
                    "Seccomp syscall argument cannot have more than "
                    f"{MAX_ARG_VALUES} allowed values"
                )