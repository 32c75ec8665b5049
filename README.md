# northstar

Building blocks for Northstar container packages: validated container
identifiers, package manifests and dm-verity integrity data.

## Installation

```
pip install .
```

Running the tests requires the `test` extra:

```
pip install .[test]
pytest
```

## Identifiers

```python
from northstar.common.name import Name
from northstar.common.version import Version, VersionReq
from northstar.common.container import Container

name = Name("hello")                  # raises InvalidNameError on bad input
version = Version.parse("1.2.3")
container = Container.parse("hello:1.2.3")
print(container)                      # hello:1.2.3

VersionReq.parse(">=1.0.0").matches(version)   # True
```

- `NonNulString` (`northstar.common.non_nul_string`) is a `str` that holds
  no nul character; building one from a string with a nul raises
  `InvalidNulChar`, whose `pos` is the byte index of the nul.
- `Name` is a `NonNulString` that is non-empty, at most 1024 characters
  long, and uses only `0-9`, `A-Z`, `a-z`, `.`, `_` and `-`. Errors are
  `EmptyNameError`, `NameTooLongError`, `InvalidCharError` and
  `NameContainsNulError`, all subclasses of `InvalidNameError`.
- `Version` is an ordered `major.minor.patch` triple. `Version.parse`
  accepts semantic versions and drops any pre-release or build part.
- `VersionReq.parse` reads comma separated requirements such as
  `>=1.0, <2`, `~1.2`, `^0.3.1` or `1.*`; `matches` tells whether a
  `Version` satisfies all of them.
- `Container` pairs a `Name` and a `Version`. `Container.parse` reads
  `name:version`; `Container.from_parts` takes them separately. Errors
  derive from `ContainerError`.

## Manifests

A manifest is a YAML document describing a container:

```python
from northstar.npk.manifest.core import Manifest

manifest = Manifest.from_str("""
name: hello
version: 0.0.1
init: /binary
uid: 1000
gid: 1001
mounts:
  /dev:
    type: dev
  /tmp:
    type: tmpfs
    size: 10MB
console:
  permissions: full
""")

print(manifest.container())   # hello:0.0.1
print(str(manifest))          # YAML again
```

`Manifest.from_str` and `Manifest.from_reader` read and verify a manifest.
They raise `ManifestParseError` for malformed YAML, duplicate keys,
unknown fields or values of the wrong kind, and `InvalidManifestError` for
semantic problems such as reserved `NORTHSTAR_*` environment variables, a
uid or gid of 0, relative or overlapping bind mounts, recursive resource
mounts, or process settings on a container without `init`. Both derive
from `ManifestError`.

`Manifest.from_dict` builds a manifest from already loaded data without
verifying it; `Manifest.verify` runs the checks. `Manifest.to_dict`,
`Manifest.to_writer` and `str(manifest)` give the mapping and YAML forms,
leaving out empty and unset entries.

The sections of a manifest live in their own modules:

- `northstar.npk.manifest.mount`: `Bind`, `Resource`, `Tmpfs`, `Dev`,
  `Persist`, `Proc`, `MountOptions`, `parse_mount`, `mount_to_dict` and
  `parse_tmpfs_size` (a byte count or a string such as `100kB`, `25MiB`).
- `northstar.npk.manifest.console`: `Permission`, `Permissions` (written
  as `full` when all are held) and `Configuration`.
- `northstar.npk.manifest.cgroups`: `CGroups` with block IO, CPU and
  memory controller settings.
- `northstar.npk.manifest.spec`: `Autostart`, `Io`, `Output`, `Level`,
  `RLimitResource`, `RLimitValue`, `Capability`, `Seccomp`,
  `SyscallArgRule` and `Selinux`.

## dm-verity

```python
from northstar.npk.dm_verity import append_dm_verity_block

root_hash = append_dm_verity_block("fs.img", size_of_image)
```

The image size must be a non-zero multiple of 4096 bytes. A verity
superblock and the salted SHA-256 hash tree are appended to the file, and
the 32-byte root hash is returned. `VerityHeader.from_bytes` reads a
superblock back from bytes or a binary stream, and `VerityHeader.check`
raises `VerityError` unless it is a version 1 sha256 superblock.

## What this package does not do

It does not run, start or stop containers, mount file systems, apply
cgroup, seccomp or SELinux settings, or pack and unpack NPK archives. It
has no command-line tool and no server; it only describes and checks
containers and produces dm-verity data for images.