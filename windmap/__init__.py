"""Global wind field acquisition on a fixed lat/lon tile grid."""

__version__ = "0.1.0"
