"""Container identifiers, package manifests and dm-verity tooling."""

__version__ = "0.1.0"