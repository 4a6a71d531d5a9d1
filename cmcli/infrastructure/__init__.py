"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the client to the outside world (HTTP, configuration files,
the console) by implementing the interfaces defined in the domain layer.
Also hosts the resilience services (rate limiting, retries).
"""
