"""
Authentication and authorization
"""
