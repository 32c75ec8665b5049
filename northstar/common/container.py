"""Container identification: a name paired with a version."""

from __future__ import annotations

from dataclasses import dataclass

from northstar.common.name import InvalidNameError, Name
from northstar.common.version import Version, VersionParseError


class ContainerError(ValueError):
    """Base class of all container identification errors."""


class MissingNameError(ContainerError):
    """The container name is missing."""

    def __init__(self) -> None:
        super().__init__("missing container name")


class InvalidContainerNameError(ContainerError):
    """The container name is not a valid name; ``error`` holds the reason."""

    def __init__(self, error: InvalidNameError) -> None:
        super().__init__("invalid container name")
        self.error = error


class MissingVersionError(ContainerError):
    """The container version is missing."""

    def __init__(self) -> None:
        super().__init__("missing container version")


class InvalidVersionError(ContainerError):
    """The container version cannot be parsed."""

    def __init__(self) -> None:
        super().__init__("invalid container version")


@dataclass(frozen=True, order=True)
class Container:
    """A container identified by name and version, written as ``name:version``."""

    name: Name
    version: Version

    def __post_init__(self) -> None:
        if not isinstance(self.name, Name):
            raise TypeError("name must be a Name")
        if not isinstance(self.version, Version):
            raise TypeError("version must be a Version")

    @classmethod
    def parse(cls, text: str) -> Container:
        """Parse ``name:version``; anything after a second colon is ignored."""
        pieces = text.split(":")
        try:
            name = Name(pieces[0])
        except InvalidNameError as error:
            raise InvalidContainerNameError(error) from error
        if len(pieces) < 2:
            raise MissingVersionError()
        try:
            version = Version.parse(pieces[1])
        except VersionParseError as error:
            raise InvalidVersionError() from error
        return cls(name, version)

    @classmethod
    def from_parts(cls, name: str | Name, version: object) -> Container:
        """Build a container from a name and anything whose text is a version."""
        if not isinstance(name, Name):
            try:
                name = Name(name)
            except InvalidNameError as error:
                raise InvalidContainerNameError(error) from error
        try:
            parsed = Version.parse(str(version))
        except VersionParseError as error:
            raise InvalidVersionError() from error
        return cls(name, parsed)

    def __str__(self) -> str:
        return f"{self.name}:{self.version}"