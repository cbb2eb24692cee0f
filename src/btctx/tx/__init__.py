"""
Transaction building, digest computation, signing and wire serialization.
"""
