"""Outgoing mail."""

from .smtp import SMTPMailer, build_mime_message, normalize_address

__all__ = ["SMTPMailer", "build_mime_message", "normalize_address"]
