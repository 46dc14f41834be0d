"""
CyberQuote - cyber insurance risk grading and underwriting backend
"""
__version__ = "1.0.0"
