"""
Core translation modules

Import components from their modules directly, e.g.:

    from pagetranslate.core.dispatcher import TranslationDispatcher
"""

__all__ = []
