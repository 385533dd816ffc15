"""Fitness club back office: member imports and subscription lifecycle."""
