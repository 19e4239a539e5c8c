"""
Placeholder resolution for datum stream fan-out

A datum stream declares source value references such as ``/123/abc``. Each
provider names the roles of the leading path segments (for example
``siteId`` then ``deviceId``); resolving the references against the stream's
placeholder bindings yields one parameter mapping per provider query.
"""

from typing import Any, Dict, List, Optional, Sequence

REFERENCE_SEPARATOR = "/"


def reference_segments(reference: str) -> List[str]:
    """Split a source value reference into its segments"""
    if reference.startswith(REFERENCE_SEPARATOR):
        reference = reference[len(REFERENCE_SEPARATOR):]
    return reference.split(REFERENCE_SEPARATOR)


def resolve_placeholder_sets(supported_placeholders: Sequence[str],
                             placeholders: Optional[Dict[str, Any]],
                             source_value_refs: Optional[Sequence[str]]) -> List[Dict[str, Any]]:
    """
    Expand placeholder bindings into one mapping per source value reference

    Args:
        supported_placeholders: Placeholder names, in path segment order
        placeholders: Static placeholder bindings, may be None
        source_value_refs: Source value references, may be None

    Returns:
        A list with one independent mapping per reference, in reference
        order, or a single mapping holding a copy of the bindings when there
        are no references. Never empty.
    """
    if not source_value_refs:
        return [dict(placeholders) if placeholders else {}]

    result = []
    for ref in source_value_refs:
        resolved = dict(placeholders) if placeholders else {}
        segments = reference_segments(ref)
        for name, segment in zip(supported_placeholders, segments):
            if segment:
                resolved[name] = segment
        result.append(resolved)
    return result
