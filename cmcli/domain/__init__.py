"""Domain Layer: value objects, events and ports (interfaces).

Has no dependencies on infrastructure; everything here is plain Python.
"""
