"""Shared building blocks for the narrator layer: the rendered context and the player digest.

Nothing here imports FastAPI or AG2.
"""
