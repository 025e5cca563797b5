"""wecomly FastAPI application."""
