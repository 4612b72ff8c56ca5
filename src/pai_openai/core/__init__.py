"""Core infrastructure: configuration, console/logging, errors, subprocesses."""
