"""Bookmark Vault Meta information.
   Bookmark Vault keeps sensitive bookmark fields encrypted at rest.
"""
__title__ = 'bookmark_vault'
__description__ = (
   'Bookmark Vault keeps sensitive bookmark fields encrypted at rest '
   'and searches them without storage-side filtering.'
)
__version__ = '0.3.0'
__license__ = 'Apache-2.0'
