"""Configuration, logging, errors and retry helpers."""
