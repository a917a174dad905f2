"""Language-model provider interface and registry."""
