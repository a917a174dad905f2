"""Deterministic auto-layout of conversation trees."""
