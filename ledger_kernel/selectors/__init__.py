"""Read-only selectors returning domain value objects."""
