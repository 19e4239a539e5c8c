"""
solar_c2c - cloud-to-cloud solar monitoring and control integrations
"""

__version__ = "0.1.0"
