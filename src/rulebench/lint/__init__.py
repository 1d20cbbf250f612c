"""Isolated evaluation of a single lint rule against source text."""
