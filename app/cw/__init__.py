"""
Configuration loading shared by the API process.
"""
