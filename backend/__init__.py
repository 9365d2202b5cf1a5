"""
Backend package: Flask HTTP API over core.service.OtpService.
"""

from .app import create_app

__all__ = ['create_app']
