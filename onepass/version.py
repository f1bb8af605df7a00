"""onepass Meta information.
   onepass keeps an encrypted local cache in front of a 1Password vault.
"""
__title__ = 'onepass'
__description__ = (
   'Encrypted local session and item cache for the 1Password '
   'command-line client.'
)
__version__ = '0.4.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
