"""
Quest domain services: generation pipeline, state machine and progress tracking.
"""
