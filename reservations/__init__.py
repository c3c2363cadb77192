"""Court booking workflow: models, storage and services."""
