"""Asynchronous quiz-generation workflow engine."""
