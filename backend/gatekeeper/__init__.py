"""Gatekeeper: token-issuing authentication service."""
