"""Inkwell social publishing backend."""
