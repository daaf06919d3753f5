"""Result conventions shared by every scanner.

A scanner returns ``None`` when nothing suspicious was seen, a multi-line
string describing its findings otherwise, and raises :class:`ScanError`
when it could not perform the check at all.
"""

from __future__ import annotations

from collections.abc import Iterable


class ScanError(Exception):
    """A scanner could not complete its check."""


def summarize(findings: Iterable[str], errors: Iterable[str]) -> str | None:
    """Combine findings and collection errors into a scanner result.

    Findings are sorted and joined by newlines; collection errors are
    appended as a trailing ``collection_errors=`` line.  With no findings,
    any errors become a :class:`ScanError`.
    """
    ordered = sorted(findings)
    error_list = list(errors)
    if not ordered:
        if error_list:
            raise ScanError(", ".join(error_list))
        return None
    if error_list:
        ordered.append(f"collection_errors={', '.join(error_list)}")
    return "\n".join(ordered)