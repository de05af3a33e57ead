# ===========================================================================
# SceneVault -- TYPED EXCEPTIONS
# ===========================================================================
# FILE: scenevault/core/exceptions.py
#
# WHAT THIS IS:
#   Custom error types for SceneVault. Each one carries a readable message,
#   a fix suggestion and a short machine-readable code, so a CLI or HTTP
#   layer can show the right thing without parsing exception text.
#
# HOW IT'S USED:
#   Instead of:  raise Exception("bad episode")
#   We write:    raise InvalidEpisodeNameError(value="EPX")
#
#   The caller catches the specific type or the whole family:
#     try:
#         target = resolve_target(project_root, descriptor)
#     except InvalidEpisodeNameError as e:
#         show_user("Episode must look like EP03 or 3.")
#     except ValidationError as e:
#         show_user(f"Bad request: {e} -- Fix: {e.fix_suggestion}")
#     except SceneVaultError as e:
#         show_user(f"Error: {e}")
#
# WHAT IS NOT HERE:
#   A failed item inside an import batch is NOT an exception the caller
#   sees. The engine catches it and reports it as an ItemResult with
#   status="failed". An optimistic-lock conflict is NOT an error either;
#   it is a SaveResult with status="conflict".
# ===========================================================================

from __future__ import annotations


class SceneVaultError(Exception):
    """
    Base class for all SceneVault errors.

    Attributes:
        fix_suggestion (str | None): Human-readable fix instruction.
        error_code (str | None): Machine-readable code like "VAL-002"
            for logging and API responses.
    """

    def __init__(self, message, fix_suggestion=None, error_code=None):
        self.fix_suggestion = fix_suggestion
        self.error_code = error_code
        super().__init__(message)

    def to_dict(self):
        """Convert to dictionary for JSON logging or API error bodies."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": str(self),
            "fix_suggestion": self.fix_suggestion,
        }


# ---------------------------------------------------------------------------
# VALIDATION ERRORS (VAL-xxx)
# Raised before any filesystem I/O happens. Nothing on disk has changed.
# ---------------------------------------------------------------------------

class ValidationError(SceneVaultError):
    """
    A request is malformed: bad mode, empty input list, unknown target,
    bad path segment or bad episode identifier.
    """
    def __init__(self, message=None, fix_suggestion=None, error_code="VAL-000"):
        super().__init__(
            message or "Request failed validation.",
            fix_suggestion=fix_suggestion,
            error_code=error_code,
        )


class InvalidSegmentError(ValidationError):
    """
    A name cannot be used as a single path segment.

    WHEN YOU'LL SEE THIS:
      - The name is empty or only whitespace
      - The name sanitizes down to "." or ".."
    """
    def __init__(self, message=None, value=None):
        detail = f" Got: {value!r}" if value is not None else ""
        super().__init__(
            message or f"Invalid path segment.{detail}",
            fix_suggestion="Use a non-empty name that is not '.' or '..'.",
            error_code="VAL-001",
        )


class InvalidEpisodeNameError(ValidationError):
    """
    An episode identifier could not be normalized to EPnn.

    Accepted forms: "EP3", "ep03", "3", "03". Rejected: "", "EP", "0",
    "three", "EP3b".
    """
    def __init__(self, message=None, value=None):
        detail = f" Got: {value!r}" if value is not None else ""
        super().__init__(
            message or f"Invalid episode name.{detail}",
            fix_suggestion="Pass a positive episode number such as 'EP03' or '3'.",
            error_code="VAL-002",
        )


class UnsupportedTargetError(ValidationError):
    """The target node type is not in the alias table."""
    def __init__(self, message=None, node_type=None):
        detail = f" Got: {node_type!r}" if node_type is not None else ""
        super().__init__(
            message or f"Unsupported ingest target node type.{detail}",
            fix_suggestion=(
                "Use one of: assets, character, scene, prop, episode, scene-card."
            ),
            error_code="VAL-003",
        )


class InvalidModeError(ValidationError):
    """Import mode is neither 'copy' nor 'move'."""
    def __init__(self, message=None, mode=None):
        super().__init__(
            message or f"Unsupported ingest mode: {mode!r}",
            fix_suggestion="Use mode='copy' or mode='move'.",
            error_code="VAL-004",
        )


class EmptyInputError(ValidationError):
    """An import batch was requested with no input paths."""
    def __init__(self, message=None):
        super().__init__(
            message or "inputs must be a non-empty list of paths.",
            fix_suggestion="Pass at least one source file or directory.",
            error_code="VAL-005",
        )


# ---------------------------------------------------------------------------
# FILESYSTEM PROTOCOL ERRORS (FS-xxx)
# Raised by the reorder protocol. Plain OSErrors from single operations are
# left as they are.
# ---------------------------------------------------------------------------

class StagingConflictError(SceneVaultError):
    """
    A temporary staging name needed by the reorder protocol already exists.

    Nothing has been renamed when this is raised. The usual cause is a
    leftover "<name>.tmp-<rank>" entry from an interrupted reorder.
    """
    def __init__(self, message=None, path=None):
        detail = f" Path: {path}" if path is not None else ""
        super().__init__(
            message or f"Staging path already exists.{detail}",
            fix_suggestion=(
                "Inspect the scenes folder for leftover '.tmp-N' entries, "
                "rename them back by hand, then retry."
            ),
            error_code="FS-001",
        )


class ReorderError(SceneVaultError):
    """
    A rename failed part-way through the reorder protocol.

    Completed renames have been rolled back (best-effort) before this is
    raised. The original OSError is chained as __cause__.
    """
    def __init__(self, message=None):
        super().__init__(
            message or "Reorder failed; completed renames were rolled back.",
            fix_suggestion="Check folder permissions and retry the reorder.",
            error_code="FS-002",
        )


# ---------------------------------------------------------------------------
# HELPER: one-line description of a caught exception
# ---------------------------------------------------------------------------
# USAGE:
#   from scenevault.core.exceptions import describe_failure
#   results.append(ItemResult.failed(source, describe_failure(exc)))
# ---------------------------------------------------------------------------

def describe_failure(exc):
    """
    Render an exception as "<TypeName>: <message>" for per-item results.

    OSErrors carry the offending path in their message already, so they
    are rendered the same way as everything else.
    """
    message = str(exc)
    if not message:
        return type(exc).__name__
    return f"{type(exc).__name__}: {message}"
