"""Configuration — settings sources, section models, and logging."""
