"""Common types: names, versions, container identifiers and nul-free strings."""