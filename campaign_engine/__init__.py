"""
Campaign Engine - audience rules and campaign delivery pipeline.
"""
__version__ = "0.1.0"
