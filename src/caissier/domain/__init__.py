"""
Caissier domain layer.
"""
