"""Configuration loading and credential providers."""
