"""Navigator CredStash Meta information.
   Navigator CredStash is a versioned, envelope-encrypted credential store.
"""
__title__ = 'navigator_credstash'
__description__ = (
   'Navigator CredStash stores versioned secrets protected by '
   'envelope encryption bound to an encryption context.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-credstash'
