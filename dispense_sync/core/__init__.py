"""
Core domain: models, field mapping and error taxonomy.
"""
