"""WP Docker CLI: credential vault for WordPress Docker deployments."""
from .version import __version__

__all__ = ["__version__"]
