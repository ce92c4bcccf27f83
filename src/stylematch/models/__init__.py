"""
Recommendation, compatibility and wardrobe models
"""
