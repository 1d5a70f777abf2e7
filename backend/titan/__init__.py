"""
Titan OS backend - daily health metric engine.
"""
