"""Schema management — SQL-file migration runner."""
