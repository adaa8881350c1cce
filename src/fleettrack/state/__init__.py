"""State layer.

Classification of validated telemetry into per-vehicle connection and
movement state, and the in-memory store that keeps the latest state for
every vehicle.
"""
