from mailroom.api.main import app

__all__ = ["app"]
