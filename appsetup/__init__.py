"""appsetup -- scaffolds a Django REST + React/Vite + PostgreSQL application."""

__version__ = "0.1.0"
