"""
OLED display RPC server package.

This package provides:
- Validation of write requests against the panel geometry and glyph set
- Serialized access to the single I2C display
- A stable error taxonomy for JSON-RPC callers
- The JSON-RPC HTTP server and its configuration
"""

__version__ = "0.1.0"
