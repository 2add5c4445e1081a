"""Navigator Crypter Meta information.
   Navigator Crypter encrypts session data with AEAD ciphers
   before it reaches the session storage.
"""
__title__ = 'navigator_crypter'
__description__ = (
   'Navigator Crypter encrypts and authenticates session data '
   'using AES-GCM or (X)ChaCha20-Poly1305.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-crypter'
