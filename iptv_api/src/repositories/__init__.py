"""MongoDB repositories for users and profiles."""
