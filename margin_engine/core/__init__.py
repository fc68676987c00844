"""
Core margin and risk algorithms
"""
