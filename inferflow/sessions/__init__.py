"""Sessions: persistence, serialization and migration of conversation trees."""
