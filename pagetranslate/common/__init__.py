"""
Placeholder helpers shared by the codec and the sentence splitter.

Depends only on pagetranslate.config.
"""
