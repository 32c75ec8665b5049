"""The NPK package format: manifests and dm-verity integrity data."""