"""Shared helpers used across collector and client code."""
