"""Pluggable collaborators of the sink (storage gateways)."""
