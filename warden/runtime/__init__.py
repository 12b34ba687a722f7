"""In-memory account runtime that compiled plans execute against."""
