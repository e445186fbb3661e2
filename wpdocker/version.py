"""WP Docker CLI Meta information.
   Encrypted credential vault for the WordPress Docker deployment CLI.
"""
__title__ = 'wp-docker-cli'
__description__ = (
   'Encrypted, PIN-protected credential vault for the '
   'WordPress Docker deployment CLI.'
)
__version__ = '0.3.0'
__license__ = 'Apache-2.0'
