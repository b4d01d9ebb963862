"""SQLite persistence for submissions and jobs."""
