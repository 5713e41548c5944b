"""
Channel resolution and eligibility decisions for survey distribution.
"""
