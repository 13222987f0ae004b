"""DutyLog API: officer activity logging with multi-tenant access control."""

__version__ = "1.0.0"
