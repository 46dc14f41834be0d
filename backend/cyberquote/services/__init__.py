"""
Business services: risk scoring, quote lifecycle, underwriting and binding.
"""
