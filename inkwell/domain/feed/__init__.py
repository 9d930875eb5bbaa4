"""Personalised feed assembly."""
