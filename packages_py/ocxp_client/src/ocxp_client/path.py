"""
OCXP content path utilities.

Paths have the form ``{type}/{id}``, where type is a singular content type
and id may itself contain slashes:

    mission/CTX-123/PHASES.md -> ParsedPath(type="mission", id="CTX-123/PHASES.md")
    mission/                  -> ParsedPath(type="mission", id=None)

Plural folder names (missions/, projects/, ...) are accepted as aliases.
"""
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

VALID_CONTENT_TYPES: List[str] = [
    "mission",
    "project",
    "context",
    "sop",
    "repo",
    "artifact",
    "kb",
    "docs",
]

TYPE_ALIASES: Dict[str, str] = {
    "mission": "mission",
    "missions": "mission",
    "project": "project",
    "projects": "project",
    "context": "context",
    "contexts": "context",
    "sop": "sop",
    "sops": "sop",
    "repo": "repo",
    "repos": "repo",
    "artifact": "artifact",
    "artifacts": "artifact",
    "kb": "kb",
    "kbs": "kb",
    "docs": "docs",
}

_PLURAL_PREFIX_RE = re.compile(r"^(missions|projects|contexts|sops|repos|artifacts|kbs)/")


@dataclass(frozen=True)
class ParsedPath:
    type: str
    id: Optional[str] = None


def parse_path(path: str) -> ParsedPath:
    """
    Split a content path into type and id.

    Raises:
        ValueError: If the path is empty or the type is not recognised.
    """
    parts = path.strip("/").split("/")

    if not parts[0]:
        raise ValueError(f"Invalid path: {path}")

    content_type = TYPE_ALIASES.get(parts[0].lower())
    if content_type is None:
        raise ValueError(
            f"Invalid content type: {parts[0]}. Valid types: {', '.join(VALID_CONTENT_TYPES)}"
        )

    content_id = "/".join(parts[1:]) if len(parts) > 1 else None
    return ParsedPath(type=content_type, id=content_id)


def normalize_path(path: str) -> str:
    """Rewrite a plural type prefix to its singular form."""
    return _PLURAL_PREFIX_RE.sub(lambda m: f"{TYPE_ALIASES[m.group(1)]}/", path)


def is_valid_content_type(content_type: str) -> bool:
    """Case-sensitive check against VALID_CONTENT_TYPES."""
    return content_type in VALID_CONTENT_TYPES


def get_canonical_type(content_type: str) -> Optional[str]:
    return TYPE_ALIASES.get(content_type.lower())


def build_path(content_type: str, content_id: Optional[str] = None) -> str:
    if content_id:
        return f"{content_type}/{content_id}"
    return f"{content_type}/"
