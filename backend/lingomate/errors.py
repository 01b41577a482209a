"""Error taxonomy shared by the core services and the HTTP layer.

Every error carries a stable machine-readable ``code``; the HTTP layer maps it
to the error envelope using ``status_code``.
"""

from __future__ import annotations


class LingomateError(Exception):
	code = "INTERNAL"
	status_code = 500

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message


class NotFound(LingomateError):
	"""User or session missing, or session not owned by the caller."""
	code = "NOT_FOUND"
	status_code = 404


class InvalidArgument(LingomateError):
	code = "INVALID_ARGUMENT"
	status_code = 400


class AlreadyFinished(LingomateError):
	"""Terminal: the session was finished by an earlier call."""
	code = "ALREADY_FINISHED"
	status_code = 409

	def __init__(self, session_id: int) -> None:
		super().__init__(f"Session {session_id} is already finished")
		self.session_id = session_id


class StorageFailure(LingomateError):
	code = "STORAGE_FAILURE"
	status_code = 503


class Unauthorized(LingomateError):
	code = "UNAUTHORIZED"
	status_code = 401
