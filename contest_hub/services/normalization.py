"""Canonical form of a stored submission payload.

Payloads reach the store through several write paths and may arrive as a JSON
string, as the bare form answers, or wrapped once or twice in an envelope of
the shape ``{"event_id": ..., "enrollment_id": ..., "submission": <payload>}``
(where the inner payload may itself be a JSON string).  :func:`normalize`
reduces all of those to the plain answers mapping and is the only function any
read or write path should use to look at a payload.

``normalize`` is idempotent: ``normalize(normalize(x)) == normalize(x)``.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

METADATA_KEYS = frozenset({"event_id", "enrollment_id", "submission"})


@dataclass(frozen=True, slots=True)
class NormalizedPayload:
	"""Result of :func:`normalize_payload`; ``normalizable`` is False when no mapping could be recovered."""
	data: Any
	normalizable: bool


def _decode(value: Any) -> tuple[Any, bool]:
	"""Parse JSON strings until a non-string comes out. Returns (value, parsed_ok)."""
	parsed_any = False
	while isinstance(value, str):
		try:
			value = json.loads(value)
		except ValueError:
			return value, parsed_any
		parsed_any = True
	return value, True


def _unwrap(value: Any) -> Any:
	while isinstance(value, Mapping) and "submission" in value:
		inner = value["submission"]
		if isinstance(inner, Mapping):
			value = inner
			continue
		if isinstance(inner, str):
			decoded, ok = _decode(inner)
			if ok:
				value = decoded
				continue
		break
	return value


def _strip_metadata(value: Any) -> Any:
	if not isinstance(value, Mapping):
		return value
	answers = {k: v for k, v in value.items() if k not in METADATA_KEYS}
	# A mapping made only of metadata keys is left as it is.
	if not answers:
		return dict(value)
	return answers


def normalize(raw: Any) -> Any:
	"""Return the canonical form-answer payload for ``raw``.

	1. strings are parsed as JSON; unparseable strings are returned unchanged;
	2. while the value is a mapping with a ``submission`` key holding a mapping
	   (or a JSON string), descend into it;
	3. drop ``event_id`` / ``enrollment_id`` / ``submission`` keys, unless that
	   would leave nothing.
	"""
	value, _ = _decode(raw)
	value = _unwrap(value)
	return _strip_metadata(value)


def normalize_payload(raw: Any) -> NormalizedPayload:
	data = normalize(raw)
	return NormalizedPayload(data=data, normalizable=isinstance(data, Mapping))


def wrap(payload: Any, depth: int, *, event_id: int = 0, enrollment_id: int = 0, as_string: bool = False) -> Any:
	"""Wrap ``payload`` in ``depth`` submission envelopes (the shapes older write paths produced)."""
	value = payload
	for _ in range(depth):
		inner = json.dumps(value) if as_string else value
		value = {"event_id": event_id, "enrollment_id": enrollment_id, "submission": inner}
	return value


__all__ = ["METADATA_KEYS", "NormalizedPayload", "normalize", "normalize_payload", "wrap"]
