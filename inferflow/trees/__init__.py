"""Conversation tree storage and its mutation contract."""

from inferflow.trees.store import TreeStore

__all__ = ["TreeStore"]
