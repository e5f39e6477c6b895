"""Shared helpers for the response engine."""
