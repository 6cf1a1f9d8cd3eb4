"""LearningHub learning management API."""
