"""
Diff Loader - Classify diff files into priority tiers and fit them to a token budget

Tier 1: source code, tests, behavior-affecting config
Tier 2: docs, other config, type definitions, CI/CD
Tier 3: lock files, generated output, minified bundles, binaries
"""

from __future__ import annotations

import re
from typing import NamedTuple

from diffloupe.models.diff import DiffFile, ParsedDiff
from diffloupe.models.loader import ClassifiedFile, FileTier, LoadBudgetResult
from diffloupe.utils.paths import get_extension, get_filename, path_sort_key
from diffloupe.utils.token_estimate import estimate_hunk_tokens

SOURCE_CODE_EXTENSIONS = frozenset({
    ".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs",
    ".py", ".go", ".rs", ".java", ".kt", ".scala", ".rb", ".php",
    ".c", ".cpp", ".cc", ".h", ".hpp", ".cs", ".swift", ".m", ".mm",
    ".vue", ".svelte",
})

BEHAVIOR_CONFIG_FILES = frozenset({
    "package.json",
    "tsconfig.json",
    "jsconfig.json",
    "vite.config.ts",
    "vite.config.js",
    "vite.config.mjs",
    "webpack.config.ts",
    "webpack.config.js",
    "webpack.config.mjs",
    "rollup.config.ts",
    "rollup.config.js",
    "rollup.config.mjs",
    "esbuild.config.ts",
    "esbuild.config.js",
    "next.config.ts",
    "next.config.js",
    "next.config.mjs",
    "nuxt.config.ts",
    "nuxt.config.js",
    "svelte.config.js",
    "astro.config.mjs",
    "remix.config.js",
    "vitest.config.ts",
    "vitest.config.js",
    "jest.config.ts",
    "jest.config.js",
    "playwright.config.ts",
    "cypress.config.ts",
    "babel.config.js",
    "babel.config.json",
    ".babelrc",
    "tailwind.config.ts",
    "tailwind.config.js",
    "postcss.config.js",
    "eslint.config.js",
    "eslint.config.mjs",
    ".eslintrc.js",
    ".eslintrc.json",
    "prettier.config.js",
    ".prettierrc",
    ".prettierrc.json",
    "biome.json",
    "deno.json",
    "bun.toml",
    "Cargo.toml",
    "go.mod",
    "pyproject.toml",
    "setup.py",
    "requirements.txt",
    "Gemfile",
    "Dockerfile",
    "docker-compose.yml",
    "docker-compose.yaml",
    "Makefile",
    "CMakeLists.txt",
})

LOCK_FILES = frozenset({
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "bun.lock",
    "bun.lockb",
    "Cargo.lock",
    "Gemfile.lock",
    "poetry.lock",
    "composer.lock",
    "go.sum",
})

DOC_EXTENSIONS = frozenset({".md", ".txt", ".rst", ".adoc"})
CONFIG_EXTENSIONS = frozenset({".json", ".yaml", ".yml", ".toml", ".ini"})

GENERATED_DIRS = ("dist/", "build/", "out/", ".next/", "node_modules/", "vendor/")
CI_CD_PREFIXES = (".github/workflows/", ".gitlab-ci", ".circleci/", "azure-pipelines", "Jenkinsfile")

_HASHED_BUNDLE = re.compile(r"\.[a-f0-9]{8,}\.js$")


class Classification(NamedTuple):
    tier: FileTier
    reason: str


# ========== Path helpers ==========


def is_test_file(path: str) -> bool:
    lower = path.lower()
    filename = get_filename(lower)
    return (
        any(marker in lower for marker in (".test.", ".spec.", "_test.", "_spec."))
        or any(seg in lower for seg in ("/test/", "/tests/", "/__tests__/"))
        or lower.startswith(("test/", "tests/", "__tests__/"))
        or lower.endswith(("_test.go", "_test.py"))
        or filename.startswith("test_")
    )


def is_generated_path(path: str) -> bool:
    lower = path.lower()
    return any(lower.startswith(d) or f"/{d}" in lower for d in GENERATED_DIRS)


def is_minified_or_bundled(path: str) -> bool:
    lower = path.lower()
    return (
        lower.endswith((".min.js", ".min.css", ".bundle.js", ".chunk.js"))
        or ".min." in lower
        or _HASHED_BUNDLE.search(lower) is not None
    )


def is_ci_cd_file(path: str) -> bool:
    return path.startswith(CI_CD_PREFIXES)


# ========== Classification ==========


def classify_file(file: DiffFile) -> Classification:
    """
    Assign a tier to one file. First matching rule wins.

    Rule order matters: `.d.ts` is checked before source code, and
    behavior configs before source code, since both can end in `.ts`/`.js`.
    """
    path = file.path
    filename = get_filename(path)
    ext = get_extension(path)

    if file.is_binary:
        return Classification(3, "binary file")
    if filename in LOCK_FILES:
        return Classification(3, "lock file")
    if is_generated_path(path):
        return Classification(3, "generated/dist directory")
    if is_minified_or_bundled(path):
        return Classification(3, "minified/bundled file")
    if path.endswith(".d.ts"):
        return Classification(2, "type definition")
    if filename in BEHAVIOR_CONFIG_FILES:
        return Classification(1, "behavior config")
    if is_test_file(path) and ext in SOURCE_CODE_EXTENSIONS:
        return Classification(1, "test file")
    if ext in SOURCE_CODE_EXTENSIONS:
        return Classification(1, "source code")
    if is_ci_cd_file(path):
        return Classification(2, "CI/CD config")
    if ext in DOC_EXTENSIONS:
        return Classification(2, "documentation")
    if ext in CONFIG_EXTENSIONS:
        return Classification(2, "config file")
    return Classification(2, "other")


def classify_diff(diff: ParsedDiff) -> list[ClassifiedFile]:
    """Classify every file and sort by (tier, path); tier-1 files always come first"""
    classified = []
    for file in diff.files:
        tier, reason = classify_file(file)
        classified.append(
            ClassifiedFile(
                file=file,
                tier=tier,
                reason=reason,
                estimated_tokens=estimate_hunk_tokens(file.hunks),
            )
        )

    classified.sort(key=lambda cf: (cf.tier, path_sort_key(cf.path)))
    return classified


def load_for_budget(classified: list[ClassifiedFile], max_tokens: float) -> LoadBudgetResult:
    """
    Greedy best-effort fill in tier order.

    A file that would overflow the budget is skipped, but later (smaller)
    files are still considered. A zero budget includes nothing and
    math.inf includes everything.
    """
    included: list[ClassifiedFile] = []
    excluded: list[ClassifiedFile] = []
    total_tokens = 0

    for cf in classified:
        if max_tokens > 0 and total_tokens + cf.estimated_tokens <= max_tokens:
            included.append(cf)
            total_tokens += cf.estimated_tokens
        else:
            excluded.append(cf)

    return LoadBudgetResult(included=included, excluded=excluded, total_tokens=total_tokens)


def count_tiers(classified: list[ClassifiedFile]) -> dict[int, int]:
    counts = {1: 0, 2: 0, 3: 0}
    for cf in classified:
        counts[cf.tier] += 1
    return counts


def analyzable_files(classified: list[ClassifiedFile]) -> list[ClassifiedFile]:
    """Tier 1 and 2 files, the ones that are sent to the analyzer"""
    return [cf for cf in classified if cf.tier <= 2]
