"""Offline evaluation of endpoint ranking."""
