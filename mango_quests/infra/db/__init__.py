"""
Database layer: declarative models, async session management and repositories.
"""
