"""Domain services for the booking workflow."""
