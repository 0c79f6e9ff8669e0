from __future__ import annotations


class PreconditionError(ValueError):
	"""Raised when the reconstruction core is called with invalid input."""
