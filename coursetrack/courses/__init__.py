"""Course content tree: typed models, traversal and storage."""
