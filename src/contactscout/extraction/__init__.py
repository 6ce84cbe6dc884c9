# src/contactscout/extraction/__init__.py
