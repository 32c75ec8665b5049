import io
from pathlib import PurePosixPath

import pytest

from northstar.common.container import Container
from northstar.common.name import Name
from northstar.common.version import Version, VersionReq
from northstar.npk.manifest.console import Permission, Permissions
from northstar.npk.manifest.core import (
    VERSION,
    InvalidManifestError,
    Manifest,
    ManifestError,
    ManifestParseError,
)
from northstar.npk.manifest.mount import (
    Bind,
    Dev,
    MountOption,
    MountOptions,
    Persist,
    Resource,
    Tmpfs,
)
from northstar.npk.manifest.spec import (
    Autostart,
    Capability,
    Io,
    Output,
    RLimitResource,
    RLimitValue,
    Seccomp,
)

HEADER = "name: hello\nversion: 0.0.0\ninit: /binary\nuid: 1000\ngid: 1001\n"

PARSE = """
name: hello
version: 0.0.0
init: /binary
args:
  - one
  - two
env:
  LD_LIBRARY_PATH: /lib
uid: 1000
gid: 1001
suppl_groups:
  - inet
  - log
capabilities:
  - CAP_NET_RAW
  - CAP_MKNOD
  - CAP_SYS_TIME
rlimits:
  nproc:
    soft: 1000
    hard: 1000
mounts:
  /dev:
    type: dev
  /tmp:
    type: tmpfs
    size: 42
  /lib:
    type: bind
    host: /lib
    options: rw
  /data:
    type: persist
  /resource:
    type: resource
    name: bla-blah.foo
    version: '>=1.0.0'
    dir: /bin/foo
    options: noexec
autostart: critical
seccomp:
  allow:
    fork: any
    waitpid: any
cgroups:
    memory:
      memory_hard_limit: 1000000
      memory_soft_limit: 1000000
      swappiness: 0
      attrs: {}
    cpu:
      cpus: 0,1
      shares: 1024
      attrs: {}
"""

ROUNDTRIP = """
name: hello
version: 0.0.0
init: /binary
uid: 1000
gid: 1001
console:
  permissions: full
args:
  - one
  - two
env:
  LD_LIBRARY_PATH: /lib
mounts:
  /dev:
    type: dev
  /lib:
    type: bind
    host: /lib
    options: rw,nosuid,nodev,noexec
  /no_option:
    type: bind
    host: /foo
  /data:
    type: persist
  /resource:
    type: resource
    name: bla-bar.blah1234
    version: '>=1.0.0'
    dir: /bin/foo
    options: rw,nosuid,nodev,noexec
  /tmp:
    type: tmpfs
    size: 42
autostart: relaxed
rlimits:
  nproc:
    soft: 100
    hard: 1000
seccomp:
  allow:
    fork: any
    waitpid: any
capabilities:
  - CAP_NET_ADMIN
io:
  stdout: pipe
  stderr: pipe
cgroups:
    memory:
      memory_hard_limit: 1000000
      memory_soft_limit: 1000000
      swappiness: 0
      attrs: {}
    cpu:
      cpus: 0,1
      shares: 1024
      attrs: {}
custom:
    blah: foo
    foo: 234
    test:
      - one
      - two
      - three
"""


def test_parse():
    manifest = Manifest.from_str(PARSE)

    assert manifest.init == PurePosixPath("/binary")
    assert str(manifest.name) == "hello"
    assert manifest.args == ["one", "two"]
    assert manifest.autostart is Autostart.CRITICAL
    assert manifest.env.get("LD_LIBRARY_PATH") == "/lib"
    assert manifest.uid == 1000
    assert manifest.gid == 1001
    assert manifest.mounts == {
        PurePosixPath("/lib"): Bind(PurePosixPath("/lib"), MountOptions([MountOption.RW])),
        PurePosixPath("/data"): Persist(),
        PurePosixPath("/resource"): Resource(
            Name("bla-blah.foo"),
            VersionReq.parse(">=1.0.0"),
            PurePosixPath("/bin/foo"),
            MountOptions([MountOption.NOEXEC]),
        ),
        PurePosixPath("/tmp"): Tmpfs(42),
        PurePosixPath("/dev"): Dev(),
    }
    assert manifest.seccomp == Seccomp(profile=None, allow={"fork": None, "waitpid": None})
    assert manifest.capabilities == {
        Capability.CAP_NET_RAW,
        Capability.CAP_MKNOD,
        Capability.CAP_SYS_TIME,
    }
    assert manifest.suppl_groups == ["inet", "log"]
    assert manifest.rlimits == {RLimitResource.NPROC: RLimitValue(1000, 1000)}
    assert manifest.cgroups.cpu.cpus == "0,1"
    assert manifest.cgroups.memory.swappiness == 0


def test_duplicate_mount():
    manifest = HEADER + "mounts:\n  /dev:\n    type: dev\n  /dev:\n    type: dev\n"
    with pytest.raises(ManifestParseError):
        Manifest.from_str(manifest)


def test_overlapping_mount():
    manifest = HEADER + """mounts:
  /lib/overlapping:
    type: bind
    host: /lib
  /lib/non_overlapping1:
    type: bind
    host: /lib
  /lib/non_overlapping2:
    type: bind
    host: /lib
  /lib/overlapping/foo:
    type: bind
    host: /lib
"""
    with pytest.raises(InvalidManifestError, match="overlap"):
        Manifest.from_str(manifest)


def test_non_overlapping_mount():
    manifest = HEADER + """mounts:
  /other_lib1:
    type: bind
    host: /lib
  /lib/non_overlapping1:
    type: bind
    host: /lib
  /other_lib2:
    type: bind
    host: /lib
  /lib/non_overlapping2:
    type: bind
    host: /lib
"""
    assert len(Manifest.from_str(manifest).mounts) == 4


def test_tmpfs():
    manifest = Manifest.from_str(HEADER + """mounts:
  /a:
    type: tmpfs
    size: 100
  /b:
    type: tmpfs
    size: 100kB
  /c:
    type: tmpfs
    size: 100MB
  /d:
    type: tmpfs
    size: 100GB
""")
    assert manifest.mounts[PurePosixPath("/a")] == Tmpfs(100)
    assert manifest.mounts[PurePosixPath("/b")] == Tmpfs(100000)
    assert manifest.mounts[PurePosixPath("/c")] == Tmpfs(100000000)
    assert manifest.mounts[PurePosixPath("/d")] == Tmpfs(100000000000)

    invalid = "name: hello\nversion: 0.0.0\ninit: /binary\n uid: 1000\ngid: 1001\nmounts:\n  /tmp:\n    type: tmpfs\n    size: 100MB\n"
    with pytest.raises(ManifestError):
        Manifest.from_str(invalid)


def test_dev_minimal():
    manifest = Manifest.from_str(HEADER + "mounts:\n  /dev:\n    type: dev")
    assert manifest.mounts == {PurePosixPath("/dev"): Dev()}


def test_mount_resource():
    manifest = Manifest.from_str(HEADER + """mounts:
  /foo:
    type: resource
    name: foo-bar.qwerty12
    version: '>=0.0.1'
    dir: /
    options: rw,noexec,nosuid
""")
    mount = manifest.mounts[PurePosixPath("/foo")]
    assert mount.name == "foo-bar.qwerty12"
    assert mount.options == {MountOption.RW, MountOption.NOEXEC, MountOption.NOSUID}
    assert mount.version.matches(Version(0, 0, 1))


def test_roundtrip():
    manifest = Manifest.from_str(ROUNDTRIP)
    again = Manifest.from_str(str(manifest))
    assert again == manifest
    assert again.io == Io(Output.PIPE, Output.PIPE)
    assert again.custom == {"blah": "foo", "foo": 234, "test": ["one", "two", "three"]}


def test_env_allowed():
    manifest = Manifest.from_str(HEADER + "\nenv:\n  LD_LIBRARY_PATH: /lib\n  PATH: /bin")
    assert manifest.env == {"LD_LIBRARY_PATH": "/lib", "PATH": "/bin"}


@pytest.mark.parametrize(
    "key", ["NORTHSTAR_CONSOLE", "NORTHSTAR_NAME", "NORTHSTAR_CONTAINER", "NORTHSTAR_VERSION"]
)
def test_env_reserved_raw(key):
    manifest = r"name: hello\nversion: 0.0.0\ninit: /binary\nuid: 1000\ngid: 1001\n" + f"\nenv:\n  {key}: foo"
    with pytest.raises(ManifestError):
        Manifest.from_str(manifest)


@pytest.mark.parametrize(
    "key", ["NORTHSTAR_CONSOLE", "NORTHSTAR_NAME", "NORTHSTAR_CONTAINER", "NORTHSTAR_VERSION"]
)
def test_env_reserved(key):
    with pytest.raises(InvalidManifestError, match="reserved"):
        Manifest.from_str(HEADER + f"env:\n  {key}: foo")


def test_console_full():
    manifest = Manifest.from_str(HEADER + "console:\n    permissions: full\n")
    for permission in Permission:
        assert permission in manifest.console.permissions
    assert manifest.console.permissions == Permissions.full()


def test_console_none():
    manifest = Manifest.from_str(HEADER)
    assert manifest.console is None


def test_console_list():
    manifest = Manifest.from_str(
        HEADER + "console:\n  permissions:\n    - shutdown\n    - start\n"
    )
    assert len(manifest.console.permissions) == 2
    assert manifest.console.permissions == {Permission.SHUTDOWN, Permission.START}


def test_uid_zero():
    with pytest.raises(InvalidManifestError, match="uid"):
        Manifest.from_str("name: hello\nversion: 0.0.0\ninit: /binary\nuid: 0\ngid: 1001\n")


def test_gid_zero():
    with pytest.raises(InvalidManifestError, match="gid"):
        Manifest.from_str("name: hello\nversion: 0.0.0\ninit: /binary\nuid: 1\ngid: 0\n")


def test_resource_container_with_args():
    with pytest.raises(InvalidManifestError, match="resource containers"):
        Manifest.from_str("name: hello\nversion: 0.0.0\nuid: 1\ngid: 1\nargs:\n  - one\n")


def test_resource_container_minimal():
    manifest = Manifest.from_str("name: res\nversion: 1.2.3\nuid: 1\ngid: 1\n")
    assert manifest.init is None
    assert manifest.container() == Container.parse("res:1.2.3")


def test_relative_bind_mount():
    with pytest.raises(InvalidManifestError, match="relative"):
        Manifest.from_str(HEADER + "mounts:\n  foo:\n    type: bind\n    host: /lib\n")


def test_recursive_resource_mount():
    manifest = HEADER + """mounts:
  /foo:
    type: resource
    name: foo
    version: '>=0.0.1'
    dir: /
    options: rec
"""
    with pytest.raises(InvalidManifestError, match="recursive"):
        Manifest.from_str(manifest)


def test_selinux_context():
    manifest = Manifest.from_str(HEADER + "selinux:\n  context: u:r:s0_t\n")
    assert manifest.selinux.context == "u:r:s0_t"
    with pytest.raises(InvalidManifestError, match="Selinux"):
        Manifest.from_str(HEADER + "selinux:\n  context: bad-context\n")


def test_seccomp_argument_index():
    manifest = HEADER + "seccomp:\n  allow:\n    ioctl:\n      args:\n        index: 6\n        values: [1]\n"
    with pytest.raises(InvalidManifestError, match="index"):
        Manifest.from_str(manifest)


def test_seccomp_argument_needs_values_or_mask():
    manifest = HEADER + "seccomp:\n  allow:\n    ioctl:\n      args:\n        index: 1\n"
    with pytest.raises(InvalidManifestError, match="values"):
        Manifest.from_str(manifest)


def test_seccomp_too_many_values():
    values = ", ".join(str(n) for n in range(51))
    manifest = HEADER + f"seccomp:\n  allow:\n    ioctl:\n      args:\n        index: 1\n        values: [{values}]\n"
    with pytest.raises(InvalidManifestError, match="50"):
        Manifest.from_str(manifest)


def test_unknown_field():
    with pytest.raises(ManifestParseError):
        Manifest.from_str(HEADER + "bogus: 1\n")


def test_missing_uid():
    with pytest.raises(ManifestParseError, match="uid"):
        Manifest.from_str("name: hello\nversion: 0.0.0\ninit: /binary\ngid: 1001\n")


def test_invalid_name():
    with pytest.raises(ManifestParseError):
        Manifest.from_str("name: he%llo\nversion: 0.0.0\ninit: /binary\nuid: 1\ngid: 1\n")


def test_from_reader_and_to_writer():
    manifest = Manifest.from_reader(io.StringIO(PARSE))
    buffer = io.StringIO()
    manifest.to_writer(buffer)
    assert Manifest.from_reader(io.StringIO(buffer.getvalue())) == manifest


def test_to_dict_skips_empty_entries():
    manifest = Manifest.from_str(HEADER)
    assert manifest.to_dict() == {
        "name": "hello",
        "version": "0.0.0",
        "init": "/binary",
        "uid": 1000,
        "gid": 1001,
    }


def test_container():
    manifest = Manifest.from_str(HEADER)
    assert str(manifest.container()) == "hello:0.0.0"


def test_npk_version():
    assert VERSION == Version(0, 0, 1)
    assert str(VERSION) == "0.0.1"