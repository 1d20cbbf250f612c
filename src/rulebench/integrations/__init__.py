"""Integrations with continuous-integration services."""
