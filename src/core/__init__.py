"""Core domain package for chatdigest.

Core contains context-window construction, markdown post-processing, and the
digest dispatcher without any Telegram, Gemini, or storage-specific code,
keeping the pipeline portable.
"""
