"""Admin CLI for the build controller."""
