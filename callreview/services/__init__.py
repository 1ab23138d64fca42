"""External collaborators and shared persistence helpers."""
