"""
HTTP boundary for RecipeCore, built with FastAPI.
"""
