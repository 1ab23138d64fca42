"""Worker process: claim loop, process wiring and synchronous drivers."""
