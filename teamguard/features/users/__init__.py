"""
User feature module.
"""
