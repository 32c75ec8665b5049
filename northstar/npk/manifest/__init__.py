"""Container manifest and its sections: mounts, console, cgroups and process settings."""