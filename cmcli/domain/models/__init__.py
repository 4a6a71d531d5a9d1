"""Domain models (Value Objects and Entities)."""
