"""Label mini-language codec.

Labels are whitespace-delimited tokens inside a free-form string::

	#tag   public tag (lower-cased)
	*org   private organization label (lower-cased)
	@usr   user mention, restricts visibility (case preserved)
	~www   domain filter, search only (lower-cased)

Anything else is free text. The codec converts between that string, a
structured :class:`Labels` value, and the query-parameter form used by
listing URLs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence, Union

TAG_PREFIX = "#"
ORG_PREFIX = "*"
USR_PREFIX = "@"
WWW_PREFIX = "~"

# (prefix, Labels attribute, query parameter, lower-case?)
_GROUPS: tuple[tuple[str, str, str, bool], ...] = (
	(TAG_PREFIX, "tag", "tag", True),
	(ORG_PREFIX, "org", "org", True),
	(USR_PREFIX, "usr", "usr", False),
	(WWW_PREFIX, "www", "www", True),
)
TEXT_PARAM = "q"

QueryParams = Union[Mapping[str, Any], Iterable[tuple[str, str]]]


@dataclass
class Labels:
	"""Structured result of parsing a label string."""

	tag: list[str] = field(default_factory=list)
	org: list[str] = field(default_factory=list)
	usr: list[str] = field(default_factory=list)
	www: list[str] = field(default_factory=list)
	text: str = ""

	def is_empty(self) -> bool:
		return not (self.tag or self.org or self.usr or self.www or self.text)


def parse_labels(raw: str | None) -> Labels:
	"""Split a label string into its groups.

	Duplicate labels collapse onto their first occurrence. A bare prefix with
	nothing after it is kept as free text. Text without any labels is kept
	as written apart from surrounding whitespace.
	"""
	labels = Labels()
	words: list[str] = []
	for token in (raw or "").split():
		for prefix, attr, _param, lower in _GROUPS:
			if token.startswith(prefix) and len(token) > len(prefix):
				value = token[len(prefix):]
				if lower:
					value = value.lower()
				bucket: list[str] = getattr(labels, attr)
				if value not in bucket:
					bucket.append(value)
				break
		else:
			words.append(token)
	if labels.tag or labels.org or labels.usr or labels.www:
		labels.text = " ".join(words)
	else:
		labels.text = (raw or "").strip()
	return labels


def encode_labels(labels: Labels) -> list[tuple[str, str]]:
	"""Return the query-parameter multimap for ``labels``.

	Each label becomes one repeated parameter; free text becomes a single
	``q`` parameter, omitted when empty.
	"""
	params: list[tuple[str, str]] = []
	for _prefix, attr, param, _lower in _GROUPS:
		params.extend((param, value) for value in getattr(labels, attr))
	if labels.text:
		params.append((TEXT_PARAM, labels.text))
	return params


def _getlist(params: QueryParams, key: str) -> list[str]:
	if hasattr(params, "getlist"):
		return [str(v) for v in params.getlist(key)]  # type: ignore[union-attr]
	if isinstance(params, Mapping):
		value = params.get(key)
		if value is None:
			return []
		if isinstance(value, (list, tuple)):
			return [str(v) for v in value]
		return [str(value)]
	return [str(v) for k, v in params if k == key]


def decode_labels(params: QueryParams) -> str:
	"""Render query parameters back into a label string.

	Groups are emitted in tag, org, usr, www order followed by the ``q`` text.
	"""
	if not isinstance(params, Mapping) and not hasattr(params, "getlist"):
		params = list(params)
	parts: list[str] = []
	for prefix, _attr, param, _lower in _GROUPS:
		parts.extend(f"{prefix}{value}" for value in _getlist(params, param) if value)
	parts.extend(value for value in _getlist(params, TEXT_PARAM) if value)
	return " ".join(parts)


def _field(record: Any, name: str) -> Sequence[str]:
	if isinstance(record, Mapping):
		value = record.get(name)
	else:
		value = getattr(record, name, None)
	return value or ()


def format_labels(record: Any) -> list[str]:
	"""Display labels for a persisted item: tags, then orgs, then usrs."""
	return (
		[f"{TAG_PREFIX}{tag}" for tag in _field(record, "tags")]
		+ [f"{ORG_PREFIX}{org}" for org in _field(record, "orgs")]
		+ [f"{USR_PREFIX}{usr}" for usr in _field(record, "usrs")]
	)
