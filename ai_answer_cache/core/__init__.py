"""
Core modules for the AI answer cache.

This package contains question hashing, the response cache, pricing,
model routing, prompt building and usage accounting.
"""
