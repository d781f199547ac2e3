"""Prompt generation for brand analysis topics."""
