"""DevHive command-line interface."""
