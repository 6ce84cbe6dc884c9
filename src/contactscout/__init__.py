# src/contactscout/__init__.py
"""Polite crawler that pulls contact details and named people out of a fixed list of pages."""

__version__ = "0.1.0"
