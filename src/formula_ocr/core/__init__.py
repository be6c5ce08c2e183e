"""Core types, models and exceptions shared across the pipeline."""
