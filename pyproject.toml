[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "northstar"
version = "0.1.0"
description = "Container identifiers, package manifests and dm-verity tooling for Northstar container packages"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["container", "manifest", "npk", "dm-verity", "embedded"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Software Distribution",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["northstar"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
