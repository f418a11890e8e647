"""Boundary to the external generative models."""
