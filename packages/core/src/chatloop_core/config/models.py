"""
Default model names used by the session and the fallback logic.
"""

DEFAULT_MODEL = "gemini-2.5-pro"
DEFAULT_FLASH_MODEL = "gemini-2.5-flash"
