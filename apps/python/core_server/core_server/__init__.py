"""Runnable FastAPI application for the course platform."""
