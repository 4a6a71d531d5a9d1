"""HTTP transport adapters and request encoding."""
