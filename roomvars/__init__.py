"""Per-room shared variables with tag-based permissions and Redis persistence."""
