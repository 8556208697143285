"""Utility helpers for working with repository files."""

from __future__ import annotations

import hashlib

TEXT_EXTENSIONS = frozenset(
    {
        ".md", ".txt", ".json", ".xml", ".yml", ".yaml", ".properties", ".conf", ".config",
        ".java", ".js", ".ts", ".jsx", ".tsx", ".py", ".rb", ".go", ".rs", ".c", ".cpp", ".h",
        ".hpp", ".css", ".scss", ".sass", ".less", ".html", ".htm", ".php", ".sql", ".sh",
        ".bash", ".zsh", ".ps1", ".bat", ".cmd", ".dockerfile", ".makefile", ".cmake",
        ".gradle", ".maven", ".pom", ".log", ".ini", ".toml", ".cfg", ".env", ".gitignore",
        ".gitattributes", ".editorconfig", ".eslintrc", ".prettierrc", ".babelrc", ".webpack",
        ".rollup", ".vite",
        # certificates and keys
        ".crt", ".cert", ".pem", ".key", ".pub", ".cer", ".der", ".p7b", ".p7c", ".p12", ".pfx",
        # response files and templates
        ".rsp", ".response", ".template", ".tpl", ".mustache", ".hbs", ".jinja", ".j2",
        # documentation formats
        ".rst", ".adoc", ".asciidoc", ".tex", ".latex", ".org", ".wiki",
        # data formats
        ".csv", ".tsv", ".jsonl", ".ndjson", ".geojson", ".topojson",
        # infrastructure
        ".tf", ".terraform", ".hcl", ".nomad", ".consul", ".vault", ".k8s", ".kube",
        ".helm", ".chart", ".ansible", ".playbook", ".role", ".handler",
        # CI/CD
        ".jenkins", ".travis", ".circleci", ".github", ".gitlab", ".azure", ".bitbucket",
    }
)

TEXT_FILE_NAMES = frozenset({"dockerfile", "makefile", "license", "changelog", "contributing"})
EXCLUDED_FILE_NAMES = frozenset({"readme.md", "readme"})


def is_text_file(name: str | None) -> bool:
    """Return True for file names worth indexing. README files are skipped."""
    if not name:
        return False

    lower_name = name.lower()
    if lower_name in EXCLUDED_FILE_NAMES:
        return False

    return lower_name in TEXT_FILE_NAMES or any(lower_name.endswith(ext) for ext in TEXT_EXTENSIONS)


def compute_sha256(text: str) -> str:
    """Compute the SHA256 hash of a document's text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
