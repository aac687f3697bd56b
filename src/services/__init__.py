"""Service layer: validation pipeline, scheduling and refunds."""
