"""API Resilience Implementations.

Contains services for client-side quota tracking, error classification
and retries with exponential backoff.
Bounded Context: API Resilience
"""
