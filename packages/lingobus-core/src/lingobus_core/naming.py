"""Deterministic artifact naming shared by the write and read paths."""

from __future__ import annotations

ARTIFACT_SEPARATOR = "_to_"
ARTIFACT_SUFFIX = ".txt"


def artifact_name(filename: str, lang: str) -> str:
    """Return the blob key of the artifact for a source image and language.

    The persistence stage writes under this key and the retrieval stage reads
    from it, so both must derive it here.

    Args:
        filename: Name of the uploaded source image.
        lang: Language of the stored text.

    Returns:
        str: Artifact key, e.g. ``a.jpg_to_en.txt``.
    """
    return f"{filename}{ARTIFACT_SEPARATOR}{lang}{ARTIFACT_SUFFIX}"
