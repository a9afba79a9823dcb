"""REST API layer"""
