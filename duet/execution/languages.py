"""Language registry — which identifiers can run, and how.

Every id the language picker offers is listed here. Each entry declares:
  - name        : display name
  - path        : direct (in-host Python), hosted (lazy-loaded interpreter)
                  or unsupported
  - transform   : source rewrite applied before a direct run (Cython only)
  - extensions  : file suffixes, used by the CLI to guess the language

Exactly one language is hosted. Anything not in this table, and anything
marked unsupported, is rejected by the dispatcher without being run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from duet.execution.cython_stripper import strip_cython


class ExecutionPath(str, Enum):
    DIRECT = "direct"
    HOSTED = "hosted"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True, slots=True)
class LanguageSpec:
    id: str
    name: str
    path: ExecutionPath
    extensions: tuple[str, ...] = ()
    transform: Callable[[str], str] | None = field(default=None, compare=False)


HOSTED_LANGUAGE = "javascript"

LANGUAGES: dict[str, LanguageSpec] = {
    spec.id: spec
    for spec in (
        LanguageSpec("python", "Python", ExecutionPath.DIRECT, (".py",)),
        LanguageSpec("cython", "Cython", ExecutionPath.DIRECT, (".pyx",), transform=strip_cython),
        LanguageSpec("javascript", "JavaScript", ExecutionPath.HOSTED, (".js", ".mjs")),
        LanguageSpec("typescript", "TypeScript", ExecutionPath.UNSUPPORTED, (".ts",)),
        LanguageSpec("java", "Java", ExecutionPath.UNSUPPORTED, (".java",)),
        LanguageSpec("cpp", "C++", ExecutionPath.UNSUPPORTED, (".cpp", ".cc", ".hpp")),
        LanguageSpec("csharp", "C#", ExecutionPath.UNSUPPORTED, (".cs",)),
        LanguageSpec("go", "Go", ExecutionPath.UNSUPPORTED, (".go",)),
        LanguageSpec("rust", "Rust", ExecutionPath.UNSUPPORTED, (".rs",)),
        LanguageSpec("ruby", "Ruby", ExecutionPath.UNSUPPORTED, (".rb",)),
        LanguageSpec("php", "PHP", ExecutionPath.UNSUPPORTED, (".php",)),
    )
}


def normalize_language(language: object) -> str:
    return language.strip().lower() if isinstance(language, str) else ""


def get_language(language: object) -> LanguageSpec | None:
    return LANGUAGES.get(normalize_language(language))


def runnable_languages() -> list[LanguageSpec]:
    return [spec for spec in LANGUAGES.values() if spec.path is not ExecutionPath.UNSUPPORTED]


def language_for_extension(suffix: str) -> str | None:
    """Map a file suffix (``.py``) to a language id, or None."""
    suffix = suffix.lower()
    for spec in LANGUAGES.values():
        if suffix in spec.extensions:
            return spec.id
    return None


def unsupported_message(language: object) -> str:
    label = normalize_language(language) or repr(language)
    spec = LANGUAGES.get(label)
    shown = spec.name if spec else label
    supported = ", ".join(spec.name for spec in runnable_languages())
    return (
        f"Execution for {shown} is not supported in this environment. "
        f"Supported languages: {supported}."
    )
