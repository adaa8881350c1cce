"""Ingestion layer.

This package contains the boundary that turns raw feed payloads (MQTT,
websocket, polling) into validated domain objects. Nothing past this
layer re-checks coordinates, speeds or timestamps.
"""

__all__: list[str] = []
