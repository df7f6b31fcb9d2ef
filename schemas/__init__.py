"""
Pydantic schemas for the Follow-up Tracker.

Contains all API request/response schemas organized by module.
"""

from .responses import *
