"""
Core building blocks: configuration, data types, units, I/O and composition helpers.
"""
