from __future__ import annotations


class AICoreError(Exception):
    """Base exception for all AI Core errors."""


# ── Lookup Errors ────────────────────────────────────────────────────

class NotFoundError(AICoreError):
    """Experience, pattern, session or record does not exist."""


# ── Input Errors ─────────────────────────────────────────────────────

class MalformedInputError(AICoreError):
    """Caller-supplied data could not be parsed or validated."""


class SnapshotError(MalformedInputError):
    """Snapshot file is corrupt or could not be written."""


class UnsupportedFormatError(MalformedInputError):
    """Requested export format is not known."""


# ── Backend Errors ───────────────────────────────────────────────────

class BackendError(AICoreError):
    """Base for generation backend errors."""


class BackendDisabledError(BackendError):
    """Backend is configured but switched off."""


class BackendUnavailableError(BackendError):
    """Backend is not reachable."""


class GenerationError(BackendError):
    """Backend answered but produced no usable text."""


class BackendCreationError(BackendError):
    """Backend could not be constructed from configuration."""


# ── Internal Errors ──────────────────────────────────────────────────

class LockTimeoutError(AICoreError):
    """Store lock could not be acquired in time."""


class ConfigError(AICoreError):
    """Invalid or missing configuration."""
