"""Course progress and assessment tracking service."""
