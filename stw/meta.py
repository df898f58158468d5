"""SEO metadata for stw pages.

Pages may start with a front matter block, either YAML between two ``---``
lines or a leading JSON object. The block is parsed into a Meta, merged over
the site-wide defaults from the ``meta`` key of the configuration, and
validated before the page is rendered.

Key functions:
- parse_front_matter: Split a page into its Meta and body.
- merge: Overlay page metadata on site metadata.
- load_site_meta: Read the site-wide defaults from the configuration.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

import yaml

ASSETS_URL_PREFIX = "/assets/"
MAX_TITLE_LENGTH = 60
MAX_DESCRIPTION_LENGTH = 160

YAML_DELIMITER = "---"


class MetaError(ValueError):
    """Base class for metadata errors."""


class FrontMatterError(MetaError):
    """Raised when a front matter block cannot be parsed."""


class MetaValidationError(MetaError):
    """Raised when metadata violates a length or path constraint."""


@dataclass
class Meta:
    """SEO metadata for a page.

    Covers the standard meta tags, Open Graph and Twitter Card properties,
    and an opaque JSON-LD object.
    """

    title: str = ""
    description: str = ""
    canonical: str = ""
    robots: str = ""
    keywords: str = ""
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""
    twitter_title: str = ""
    twitter_description: str = ""
    twitter_image: str = ""
    jsonld: dict[str, Any] | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Meta:
        """Build a Meta from a parsed YAML or JSON mapping.

        Unknown keys are ignored and missing or null keys stay empty.

        Raises:
            FrontMatterError: If a field holds a value of the wrong shape.
        """
        values: dict[str, Any] = {}
        for item in fields(cls):
            value = data.get(item.name)
            if value is None:
                continue
            if item.name == "jsonld":
                if not isinstance(value, Mapping):
                    raise FrontMatterError(
                        f"jsonld must be a mapping, got {type(value).__name__}"
                    )
                values["jsonld"] = dict(value)
            else:
                values[item.name] = _scalar_to_str(item.name, value)
        return cls(**values)

    def is_empty(self) -> bool:
        """Return True if no field carries a value."""
        return not self.jsonld and not any(
            getattr(self, item.name) for item in fields(self) if item.name != "jsonld"
        )

    def validate(self, assets_prefix: str = ASSETS_URL_PREFIX) -> None:
        """Check length limits and image locations.

        Lengths are counted in UTF-8 bytes. Image paths are only checked for
        their prefix, not for existence on disk.

        Raises:
            MetaValidationError: On the first violated constraint.
        """
        if len(self.title.encode("utf-8")) > MAX_TITLE_LENGTH:
            raise MetaValidationError(
                f"title exceeds {MAX_TITLE_LENGTH} characters: {self.title}"
            )
        if len(self.description.encode("utf-8")) > MAX_DESCRIPTION_LENGTH:
            raise MetaValidationError(
                f"description exceeds {MAX_DESCRIPTION_LENGTH} characters: {self.description}"
            )
        for name in ("og_image", "twitter_image"):
            image = getattr(self, name)
            if image and not image.startswith(assets_prefix):
                raise MetaValidationError(f"{name} must be under {assets_prefix}: {image}")


def _scalar_to_str(name: str, value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        raise FrontMatterError(f"{name} must be a scalar, got {type(value).__name__}")
    return str(value)


def merge(site_meta: Meta, page_meta: Meta) -> Meta:
    """Combine site defaults with page overrides.

    A page string field wins when it is non-empty; the page's ``jsonld``
    replaces the site's wholesale when it is set at all.
    """
    overrides: dict[str, Any] = {}
    for item in fields(Meta):
        value = getattr(page_meta, item.name)
        if item.name == "jsonld":
            if value is not None:
                overrides["jsonld"] = value
        elif value:
            overrides[item.name] = value
    return replace(site_meta, **overrides)


def parse_front_matter(content: str) -> tuple[Meta, str]:
    """Extract front matter from page content.

    YAML is tried first, then JSON. A block that parses to no values counts
    as absent, so the next format is tried and, failing that, the content is
    returned unchanged with an empty Meta.

    Args:
        content: Raw page source.

    Returns:
        Tuple of (metadata, body with leading newlines removed).

    Raises:
        FrontMatterError: If a block is opened but never closed, or does not
            parse.
    """
    block = _split_yaml_block(content)
    if block is not None:
        raw, body = block
        meta = Meta.from_mapping(_load_yaml(raw))
        if not meta.is_empty():
            return meta, body.lstrip("\r\n")

    block = _split_json_block(content)
    if block is not None:
        raw, body = block
        meta = Meta.from_mapping(_load_json(raw))
        if not meta.is_empty():
            return meta, body.lstrip("\r\n")

    return Meta(), content


def _split_yaml_block(content: str) -> tuple[str, str] | None:
    lines = content.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n") != YAML_DELIMITER:
        return None
    for index in range(1, len(lines)):
        if lines[index].rstrip("\r\n") == YAML_DELIMITER:
            return "".join(lines[1:index]), "".join(lines[index + 1 :])
    raise FrontMatterError("unterminated YAML front matter: missing closing '---'")


def _load_yaml(raw: str) -> Mapping[str, Any]:
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"invalid YAML front matter: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FrontMatterError(
            f"YAML front matter must be a mapping, got {type(data).__name__}"
        )
    return data


def _split_json_block(content: str) -> tuple[str, str] | None:
    if not content.startswith("{"):
        return None
    # A JSON object continues with a key or closes; "{{", "{%" and "{#" open
    # template tags instead.
    rest = content[1:].lstrip()
    if rest and rest[0] not in '"}':
        return None

    depth = 0
    in_string = False
    escaped = False
    for index, char in enumerate(content):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return content[: index + 1], content[index + 1 :]
    raise FrontMatterError("unterminated JSON front matter: missing closing '}'")


def _load_json(raw: str) -> Mapping[str, Any]:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise FrontMatterError(f"invalid JSON front matter: {exc}") from exc


def load_site_meta(config: Mapping[str, Any]) -> Meta:
    """Read site-wide metadata from the ``meta`` key of the configuration.

    Site and page metadata share one schema, so the block is converted with
    the same rules as front matter.

    Raises:
        MetaError: If ``meta`` is present but not a mapping, or holds a
            field of the wrong shape.
    """
    data = config.get("meta")
    if data is None:
        return Meta()
    if not isinstance(data, Mapping):
        raise MetaError(f"site meta must be a mapping, got {type(data).__name__}")
    return Meta.from_mapping(data)
