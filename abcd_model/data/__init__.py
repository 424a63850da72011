"""Configuration and input data handling."""
