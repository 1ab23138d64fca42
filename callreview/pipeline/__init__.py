"""Stage handlers of the call processing pipeline."""
