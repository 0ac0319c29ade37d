"""Sampha server: workspace-scoped project and task management API."""
