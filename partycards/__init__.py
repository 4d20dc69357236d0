"""Party Cards: judge-rotation party card game coordinator."""
from partycards.version import APP_VERSION

__version__ = APP_VERSION
