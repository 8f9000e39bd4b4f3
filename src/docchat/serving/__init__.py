"""
Serving — FastAPI application for uploads, conversations and streaming chat.
"""
