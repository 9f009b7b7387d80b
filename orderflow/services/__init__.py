"""Domain services; each public method runs as one database transaction."""
