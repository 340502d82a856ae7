"""Quiz listing, submission and attempt history."""
