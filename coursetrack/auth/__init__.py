"""Authentication: bearer JWT verification for learners."""
