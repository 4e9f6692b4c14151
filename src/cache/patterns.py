"""Cache path patterns: ``[token]`` substitution with optional ``( ... )`` blocks.

``[organisation]/[module]/[type]s/[artifact]-[revision](.[ext])`` gives
``acme/core/jars/core-1.0.jar`` and, for an artifact without extension,
``acme/core/jars/core-1.0``: an optional block disappears when every token
inside it substitutes to an empty value.
"""

from __future__ import annotations

import glob as globlib
import re
from typing import Dict, Mapping, Optional, Tuple

from descriptor.models import Artifact, ModuleRevisionId

ORGANISATION_KEY = "organisation"
MODULE_KEY = "module"
REVISION_KEY = "revision"
ARTIFACT_KEY = "artifact"
TYPE_KEY = "type"
EXT_KEY = "ext"
ORIGINAL_NAME_KEY = "originalname"

_TOKEN = re.compile(r"\[([^\[\]]+)\]")
_OPTIONAL = re.compile(r"\(([^()]*)\)")


def tokens_for_revision(mrid: ModuleRevisionId) -> Dict[str, str]:
    tokens = dict(mrid.extra_attributes)
    tokens.update({
        ORGANISATION_KEY: mrid.organisation,
        MODULE_KEY: mrid.name,
        REVISION_KEY: mrid.revision,
    })
    return tokens


def tokens_for_artifact(artifact: Artifact, original_name: Optional[str] = None) -> Dict[str, str]:
    tokens = tokens_for_revision(artifact.module_revision_id)
    tokens.update(artifact.extra_attributes)
    if not original_name:
        original_name = f"{artifact.name}.{artifact.ext}" if artifact.ext else artifact.name
    tokens.update({
        ARTIFACT_KEY: artifact.name,
        TYPE_KEY: artifact.type,
        EXT_KEY: artifact.ext or "",
        ORIGINAL_NAME_KEY: original_name,
    })
    return tokens


def substitute_tokens(pattern: str, tokens: Mapping[str, Optional[str]]) -> str:
    """Replace every ``[token]`` of ``pattern``; unknown tokens become empty."""

    def fill(text: str) -> str:
        return _TOKEN.sub(lambda m: str(tokens.get(m.group(1)) or ""), text)

    def optional(match: re.Match) -> str:
        block = match.group(1)
        names = _TOKEN.findall(block)
        if names and not any(tokens.get(name) for name in names):
            return ""
        return fill(block)

    return fill(_OPTIONAL.sub(optional, pattern))


def substitute_revision(pattern: str, mrid: ModuleRevisionId) -> str:
    return substitute_tokens(pattern, tokens_for_revision(mrid))


def substitute_artifact(pattern: str, artifact: Artifact, original_name: Optional[str] = None) -> str:
    return substitute_tokens(pattern, tokens_for_artifact(artifact, original_name))


_CAPTURE = "@@CAPTURE@@"
_ANY = "@@ANY@@"


class _ListingTokens(dict):
    def get(self, key, default=None):
        return super().get(key, _ANY)


def token_listing(pattern: str, token: str, tokens: Mapping[str, Optional[str]]) -> Tuple[str, "re.Pattern[str]"]:
    """Glob and regex for listing the values of ``token`` under ``pattern``.

    Tokens given in ``tokens`` are fixed, the others match any single path
    segment part. The regex captures the listed value as group ``value``.
    """
    values = _ListingTokens({k: v for k, v in tokens.items() if v and k != token})
    values[token] = _CAPTURE
    filled = substitute_tokens(pattern, values)
    glob_pattern = globlib.escape(filled).replace(_CAPTURE, "*").replace(_ANY, "*")
    regex = re.escape(filled).replace(_CAPTURE, r"(?P<value>[^/]+)", 1)
    regex = regex.replace(_CAPTURE, r"(?P=value)").replace(_ANY, r"[^/]*")
    return glob_pattern, re.compile(regex)
