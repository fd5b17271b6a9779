"""
pagetranslate - translate HTML fragments through a chat-completion API
while preserving markup.
"""

__version__ = "0.1.0"
