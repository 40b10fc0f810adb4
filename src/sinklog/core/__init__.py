"""Buffering, flushing and shutdown machinery of sinklog."""
