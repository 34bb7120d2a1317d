"""Azure AD Connect sync configuration documenter - pilot vs production HTML diff reports."""

try:
    from importlib.metadata import version

    __version__ = version("adsync-documenter")
except Exception:
    __version__ = "unknown"
