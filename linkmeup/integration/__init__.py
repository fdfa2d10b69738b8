"""Integrations with the local Teleport client."""
