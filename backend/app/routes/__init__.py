# Routes package
from .reports import reports_bp

__all__ = ['reports_bp']
