"""Export of sessions and conversation summaries."""
