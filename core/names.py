"""
core/names.py -- Name variants for reconciling people with the credentialing platform.

The platform shares no key with the enterprise directory, so a person is
located by searching their last name and comparing each candidate's first
name against the variants produced here.

Matching is greedy: the first candidate whose first name equals any variant
wins, in the order the platform returned them. Two people with the same last
name and similar first names can be confused; callers get "first match or
none", never an ambiguity error.
"""

from typing import Any, Iterable, Optional


def generate_name_variants(first_name: str, middle_name: Optional[str] = None) -> tuple[str, ...]:
    """Return candidate first-name strings, most specific first.

    "Mary Jane" / "Ann Louise" ->
        ("Mary Jane", "Mary", "Mary Jane A", "Mary Jane L", "Mary A", "Mary L")
    """
    variants: list[str] = [first_name]

    first_tokens = first_name.split()
    if len(first_tokens) > 1:
        variants.append(first_tokens[0])

    if middle_name:
        middle_tokens = middle_name.split()
        for name in list(variants):
            for token in middle_tokens:
                variants.append(f"{name} {token[0]}")

    # dict preserves first-occurrence order
    return tuple(dict.fromkeys(v for v in variants if v))


def matches_variant(candidate_first_name: Optional[str], variants: Iterable[str]) -> bool:
    """Case-insensitive equality against any variant."""
    if not candidate_first_name:
        return False
    folded = candidate_first_name.casefold()
    return any(folded == v.casefold() for v in variants)


def pick_first_match(candidates: Iterable[dict[str, Any]], variants: tuple[str, ...]) -> Optional[dict[str, Any]]:
    """Return the first search candidate whose nameFirst matches, or None."""
    for candidate in candidates:
        if matches_variant(candidate.get("nameFirst"), variants):
            return candidate
    return None
