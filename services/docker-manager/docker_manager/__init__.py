"""Shadow Bot docker-manager: consumes join-meeting jobs and starts recorder containers."""
