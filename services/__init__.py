"""
Services module for the Follow-up Tracker.

Contains business logic and external service integrations.
"""
