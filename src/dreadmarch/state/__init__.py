"""State/store layer.

This package owns the application state snapshot, the action surface that
replaces it, and the batched, scoped delivery of change notifications to
view components.
"""
