"""Import of exported session documents."""
