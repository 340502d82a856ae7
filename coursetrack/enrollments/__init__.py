"""Course enrollments and the auto-enrollment guard."""
