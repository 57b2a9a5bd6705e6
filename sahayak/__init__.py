"""Samriddhi Sahayak: conversational assistant core for the citizen welfare portal."""

__version__ = "0.1.0"
