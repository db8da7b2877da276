from .auth import auth_bp
from .portal import portal_bp
from .admin import admin_bp

__all__ = ['auth_bp', 'portal_bp', 'admin_bp']
