"""Language inference from file extensions and well-known file names."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

_EXTENSION_LANGUAGES: Final[dict[str, str]] = {
    "rs": "rust",
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "py": "python",
    "go": "go",
    "rb": "ruby",
    "java": "java",
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "hpp": "cpp",
    "swift": "swift",
    "kt": "kotlin",
    "kts": "kotlin",
    "sh": "bash",
    "bash": "bash",
    "zsh": "bash",
    "md": "markdown",
    "toml": "toml",
    "yaml": "yaml",
    "yml": "yaml",
    "json": "json",
    "xml": "xml",
    "html": "html",
    "htm": "html",
    "css": "css",
    "sql": "sql",
    "graphql": "graphql",
    "gql": "graphql",
    "proto": "protobuf",
    "tf": "hcl",
    "lock": "toml",
}

_FILENAME_LANGUAGES: Final[dict[str, str]] = {
    "Dockerfile": "dockerfile",
    "Containerfile": "dockerfile",
    "Makefile": "makefile",
    "GNUmakefile": "makefile",
    "Justfile": "makefile",
    "justfile": "makefile",
    "CMakeLists.txt": "cmake",
    ".gitignore": "gitignore",
    ".dockerignore": "gitignore",
    ".prettierignore": "gitignore",
    ".eslintignore": "gitignore",
    ".env": "dotenv",
    ".env.local": "dotenv",
    ".env.example": "dotenv",
    "Gemfile": "ruby",
    "Rakefile": "ruby",
    "Vagrantfile": "ruby",
}


def infer_language(
    path: str,
    languages: Mapping[str, Sequence[str]] | None = None,
) -> str:
    """Return a language identifier for ``path`` or ``""`` when unknown.

    ``languages`` maps language names to extensions (the ``[languages]`` config table) and
    takes precedence over the built-in table.
    """

    name = PurePosixPath(path.replace("\\", "/")).name
    _, dot, extension = name.rpartition(".")
    extension = extension if dot else ""

    if extension and languages:
        for language in sorted(languages):
            if extension in languages[language]:
                return language

    from_extension = _EXTENSION_LANGUAGES.get(extension, "") if extension else ""
    if from_extension:
        return from_extension
    return _FILENAME_LANGUAGES.get(name, "")


__all__ = ["infer_language"]
