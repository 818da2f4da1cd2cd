"""
UPI Piggy
Round-up savings and auto-invest core with an async FastAPI surface
"""

__version__ = "0.1.0"
