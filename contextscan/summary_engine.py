"""Tech-stack summary: languages, frameworks, external APIs, build tools, purpose."""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Sequence, Tuple

from .config import MAX_README_BYTES
from .engine_base import ExtractionEngine
from .fs_utils import read_safe
from .manifests import parse_all_manifests
from .models import CodebaseSummary

logger = logging.getLogger(__name__)

# Framework patterns match exactly, or as a prefix when they end in "/".
FRAMEWORK_PATTERNS: List[Tuple[str, List[str]]] = [
    ("Next.js", ["next"]),
    ("React", ["react", "react-dom"]),
    ("Remix", ["@remix-run/"]),
    ("Vue", ["vue"]),
    ("Nuxt", ["nuxt"]),
    ("Angular", ["@angular/core", "@angular/"]),
    ("Svelte", ["svelte"]),
    ("SvelteKit", ["@sveltejs/kit"]),
    ("Express", ["express"]),
    ("Fastify", ["fastify"]),
    ("NestJS", ["@nestjs/core", "@nestjs/"]),
    ("Hono", ["hono"]),
    ("Prisma", ["@prisma/client", "prisma"]),
    ("Drizzle", ["drizzle-orm"]),
    ("tRPC", ["@trpc/"]),
    ("Tailwind CSS", ["tailwindcss"]),
    ("Django", ["django"]),
    ("Flask", ["flask"]),
    ("FastAPI", ["fastapi"]),
    ("SQLAlchemy", ["sqlalchemy"]),
    ("Gin", ["github.com/gin-gonic/gin"]),
    ("Echo", ["github.com/labstack/echo/"]),
    ("Fiber", ["github.com/gofiber/fiber/"]),
    ("Actix", ["actix-web"]),
    ("Axum", ["axum"]),
    ("Tokio", ["tokio"]),
]

# (exact or "/"-prefix patterns, substring patterns)
API_PATTERNS: List[Tuple[str, List[str], List[str]]] = [
    ("Anthropic", ["@anthropic-ai/"], ["anthropic"]),
    ("OpenAI", [], ["openai"]),
    ("Vercel AI", ["ai", "@ai-sdk/"], []),
    ("Stripe", ["@stripe/"], ["stripe"]),
    ("AWS", ["aws-sdk", "@aws-sdk/", "boto3"], []),
    ("Google Cloud", ["@google-cloud/"], ["google-cloud"]),
    ("Firebase", [], ["firebase"]),
    ("Supabase", ["@supabase/"], ["supabase"]),
    ("Twilio", [], ["twilio"]),
    ("SendGrid", ["@sendgrid/"], ["sendgrid"]),
    ("Resend", ["resend"], []),
    ("Clerk", ["@clerk/"], []),
    ("Auth0", ["@auth0/", "auth0"], []),
]

BUILD_TOOL_FILES: Dict[str, str] = {
    "vite.config.ts": "Vite",
    "vite.config.js": "Vite",
    "webpack.config.js": "Webpack",
    "rollup.config.js": "Rollup",
    "next.config.js": "Next.js",
    "next.config.mjs": "Next.js",
    "next.config.ts": "Next.js",
    "tsconfig.json": "TypeScript",
    "babel.config.js": "Babel",
    ".babelrc": "Babel",
    "turbo.json": "Turborepo",
    "Makefile": "Make",
    "Dockerfile": "Docker",
    "docker-compose.yml": "Docker Compose",
    "Cargo.toml": "Cargo",
    "go.mod": "Go Modules",
    "pyproject.toml": "Python (pyproject)",
    "setup.py": "setuptools",
    "pom.xml": "Maven",
    "build.gradle": "Gradle",
}

LANGUAGE_EXTENSIONS: Dict[str, str] = {
    ".ts": "TypeScript", ".tsx": "TypeScript", ".mts": "TypeScript", ".cts": "TypeScript",
    ".js": "JavaScript", ".jsx": "JavaScript", ".mjs": "JavaScript", ".cjs": "JavaScript",
    ".py": "Python",
    ".go": "Go",
    ".rs": "Rust",
    ".java": "Java",
    ".kt": "Kotlin",
    ".swift": "Swift",
    ".rb": "Ruby",
    ".php": "PHP",
    ".cs": "C#",
    ".cpp": "C++", ".cc": "C++", ".hpp": "C++",
    ".c": "C", ".h": "C",
    ".scala": "Scala",
    ".dart": "Dart",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".css": "CSS", ".scss": "SCSS", ".sass": "SCSS", ".less": "Less",
    ".html": "HTML",
    ".sql": "SQL",
    ".sh": "Shell", ".bash": "Shell",
}

README_CANDIDATES = ("README.md", "readme.md", "Readme.md", "README.txt", "README")
PURPOSE_MAX_CHARS = 500

_README_CLEANUP: Sequence[Tuple[re.Pattern, str]] = [
    (re.compile(r"```[\s\S]*?```"), ""),
    (re.compile(r"`[^`\n]*`"), ""),
    (re.compile(r"!\[[^\]]*\]\([^)]*\)"), ""),
    (re.compile(r"\[([^\]]*)\]\([^)]*\)"), r"\1"),
    (re.compile(r"<[^>]+>"), ""),
    (re.compile(r"^#{1,6}\s.*$", re.MULTILINE), ""),
    (re.compile(r"(\*\*|__)(?=\S)(.+?)(?<=\S)\1"), r"\2"),
    (re.compile(r"(?<![\w*])\*(?=\S)(.+?)(?<=\S)\*(?![\w*])"), r"\1"),
    (re.compile(r"(?<!\w)_(?=\S)(.+?)(?<=\S)_(?!\w)"), r"\1"),
    (re.compile(r"[ \t]+$", re.MULTILINE), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
]


def clean_readme(text: str) -> str:
    """Strip markdown decoration and keep the first 500 characters."""
    for pattern, replacement in _README_CLEANUP:
        text = pattern.sub(replacement, text)
    return text.strip()[:PURPOSE_MAX_CHARS]


def _matches(dependency: str, pattern: str) -> bool:
    if pattern.endswith("/"):
        return dependency.startswith(pattern)
    return dependency == pattern


def detect_frameworks(dependencies: Sequence[str]) -> List[str]:
    lowered = [d.lower() for d in dependencies]
    return [
        name for name, patterns in FRAMEWORK_PATTERNS
        if any(_matches(dep, p) for dep in lowered for p in patterns)
    ]


def detect_apis(dependencies: Sequence[str]) -> List[str]:
    lowered = [d.lower() for d in dependencies]
    found = []
    for name, patterns, substrings in API_PATTERNS:
        if any(_matches(dep, p) for dep in lowered for p in patterns) or any(
            s in dep for dep in lowered for s in substrings
        ):
            found.append(name)
    return found


def language_percentages(counts: Counter) -> Dict[str, int]:
    """Rounded percentage per language, most files first.

    Returns an empty map when no file matched a known extension.
    """
    total = sum(counts.values())
    if not total:
        return {}
    ordered = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return {lang: math.floor(count * 100 / total + 0.5) for lang, count in ordered if count}


class CodebaseSummaryEngine(ExtractionEngine):
    kind = "summary"

    def generate(self) -> str:
        with ThreadPoolExecutor(max_workers=3) as pool:
            manifest_future = pool.submit(parse_all_manifests, self.workspace)
            language_future = pool.submit(self._count_languages)
            build_future = pool.submit(self._detect_build_tools)
            manifest = manifest_future.result()
            counts, total_files = language_future.result()
            build_tools = build_future.result()

        self.file_count = total_files
        languages = language_percentages(counts)
        all_deps = manifest.dependencies + manifest.dev_dependencies

        summary = CodebaseSummary(
            name=manifest.name or self.workspace.name,
            version=manifest.version,
            description=manifest.description,
            purpose=self._read_purpose(),
            primary_language=next(iter(languages), "Unknown"),
            languages=languages,
            frameworks=detect_frameworks(all_deps),
            apis=detect_apis(all_deps),
            build_tools=build_tools,
            dependencies=manifest.dependencies,
            dev_dependencies=manifest.dev_dependencies,
            dependency_count=len(set(all_deps)),
        )
        return self.dump(summary)

    def _count_languages(self) -> Tuple[Counter, int]:
        counts: Counter = Counter()
        total = 0
        for entry in self.walk():
            if entry.is_dir:
                continue
            total += 1
            language = LANGUAGE_EXTENSIONS.get(entry.suffix)
            if language:
                counts[language] += 1
        return counts, total

    def _detect_build_tools(self) -> List[str]:
        tools: List[str] = []
        for filename, tool in BUILD_TOOL_FILES.items():
            if (self.workspace / filename).is_file() and tool not in tools:
                tools.append(tool)
        return tools

    def _read_purpose(self) -> str:
        for candidate in README_CANDIDATES:
            path = self.workspace / candidate
            if not path.is_file():
                continue
            text = read_safe(path, MAX_README_BYTES)
            if text:
                return clean_readme(text)
        return ""
