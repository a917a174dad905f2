"""Context assembly, answer segmentation and spawning of new nodes."""
