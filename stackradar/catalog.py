"""Static reference data for well-known technologies.

Holds the known-technology table, name aliases, version-exact EOL tables
for language runtimes with fixed schedules, textual lifecycle patterns
and the rule-based insight templates used when no AI collaborator is
available.  Nothing in here performs I/O.
"""

from dataclasses import dataclass, field

# Source selection hint for a known technology.
API_NPM = "npm"
API_PYPI = "pypi"
API_LIFECYCLE = "lifecycle"
API_STATIC = "static"

RUNTIME_CATEGORIES = frozenset(
    {
        "language",
        "runtime",
        "containerization",
        "orchestration",
        "database",
        "webserver",
        "search",
        "build",
        "cloud",
    }
)


@dataclass(frozen=True)
class KnownTechnology:
    """Catalog entry for a technology we have hand-curated data for.

    Attributes:
        key: Canonical key (lowercase).
        category: Technology category tag.
        api: Preferred live source (``npm``, ``pypi``, ``lifecycle`` or
            ``static``).
        package_name: Registry package name when it differs from the key.
        repos: GitHub ``owner/name`` candidates, in order.
        eol_slugs: endoflife.date product slugs, in order.
        static_version: Hand-maintained latest version.
        check_url: Page for manual verification.
        static_eol: Free-text lifecycle description.
        static_support_end: Free-text or dated end of active support.
        lts_version: Current LTS line, if the project has one.
        eol_pattern: Last-resort lifecycle phrase.
    """

    key: str
    category: str
    api: str
    package_name: str | None = None
    repos: tuple[str, ...] = ()
    eol_slugs: tuple[str, ...] = ()
    static_version: str | None = None
    check_url: str | None = None
    static_eol: str | None = None
    static_support_end: str | None = None
    lts_version: str | None = None
    eol_pattern: str | None = None

    @property
    def ecosystem(self) -> str | None:
        if self.api == API_NPM:
            return "npm"
        if self.api == API_PYPI:
            return "PyPI"
        return None


KNOWN_TECHNOLOGIES: dict[str, KnownTechnology] = {
    t.key: t
    for t in (
        # ── Frontend ────────────────────────────────────────────────────
        KnownTechnology(
            key="react",
            category="frontend",
            api=API_NPM,
            repos=("facebook/react",),
            eol_slugs=("react",),
            static_eol="No formal EOL (Meta maintains)",
            eol_pattern="Major versions supported ~18-24 months by Meta",
        ),
        KnownTechnology(
            key="vue",
            category="frontend",
            api=API_NPM,
            repos=("vuejs/core", "vuejs/vue"),
            eol_slugs=("vue",),
            static_eol="Vue 2: Dec 2023, Vue 3: Active",
        ),
        KnownTechnology(
            key="angular",
            category="frontend",
            api=API_NPM,
            package_name="@angular/core",
            repos=("angular/angular",),
            eol_slugs=("angular",),
            eol_pattern="Major versions: 18 months LTS support",
        ),
        KnownTechnology(
            key="nextjs",
            category="frontend",
            api=API_NPM,
            package_name="next",
            repos=("vercel/next.js",),
            eol_slugs=("nextjs",),
            eol_pattern="Major versions: ~12-18 months support",
        ),
        KnownTechnology(
            key="nuxt",
            category="frontend",
            api=API_NPM,
            repos=("nuxt/nuxt",),
            eol_slugs=("nuxt",),
            static_eol="Nuxt 2: June 2024, Nuxt 3: Active",
        ),
        KnownTechnology(
            key="svelte",
            category="frontend",
            api=API_NPM,
            repos=("sveltejs/svelte",),
            eol_pattern="Major versions: ~24 months",
        ),
        KnownTechnology(
            key="typescript",
            category="frontend",
            api=API_NPM,
            repos=("microsoft/TypeScript",),
            eol_pattern="Rolling release, no formal EOL",
        ),
        # ── Backend ─────────────────────────────────────────────────────
        KnownTechnology(
            key="express",
            category="backend",
            api=API_NPM,
            repos=("expressjs/express",),
            eol_pattern="Active maintenance, no formal EOL",
        ),
        KnownTechnology(
            key="fastapi",
            category="backend",
            api=API_PYPI,
            repos=("fastapi/fastapi", "tiangolo/fastapi"),
            eol_pattern="Active development, no formal EOL",
        ),
        KnownTechnology(
            key="django",
            category="backend",
            api=API_PYPI,
            repos=("django/django",),
            eol_slugs=("django",),
        ),
        KnownTechnology(
            key="flask",
            category="backend",
            api=API_PYPI,
            repos=("pallets/flask",),
            eol_pattern="Active maintenance, no formal EOL",
        ),
        KnownTechnology(
            key="spring-boot",
            category="backend",
            api=API_LIFECYCLE,
            repos=("spring-projects/spring-boot",),
            eol_slugs=("spring-boot",),
            static_version="3.3.6",
            check_url="https://spring.io/projects/spring-boot",
            eol_pattern="OSS: ongoing, Commercial support available",
        ),
        # ── Runtimes and languages ──────────────────────────────────────
        KnownTechnology(
            key="nodejs",
            category="runtime",
            api=API_LIFECYCLE,
            repos=("nodejs/node",),
            eol_slugs=("nodejs",),
            static_version="22.12.0",
            check_url="https://nodejs.org/en/download/releases/",
            static_eol="Node 18: April 2025, Node 20: April 2026, Node 22: April 2027",
            eol_pattern="LTS versions: 30 months (18 months active + 12 months maintenance)",
        ),
        KnownTechnology(
            key="python",
            category="language",
            api=API_LIFECYCLE,
            repos=("python/cpython",),
            eol_slugs=("python",),
            static_version="3.13.1",
            check_url="https://www.python.org/downloads/",
            static_eol="2029-10",
            eol_pattern="Major versions: ~5 years support",
        ),
        KnownTechnology(
            key="java",
            category="language",
            api=API_LIFECYCLE,
            repos=("openjdk/jdk",),
            eol_slugs=("java", "oracle-jdk"),
            static_version="25.0.0",
            check_url="https://openjdk.org/projects/jdk/",
            static_eol="2033-09",
            static_support_end="2030-09",
            lts_version="25",
            eol_pattern="Java 8: 2030, Java 11: 2026, Java 17: 2029, Java 21: 2031, Java 25: 2033 (LTS)",
        ),
        KnownTechnology(
            key="go",
            category="language",
            api=API_LIFECYCLE,
            repos=("golang/go",),
            eol_slugs=("go",),
            static_version="1.23.4",
            check_url="https://go.dev/dl/",
            static_eol="Rolling release",
        ),
        KnownTechnology(
            key="rust",
            category="language",
            api=API_STATIC,
            repos=("rust-lang/rust",),
            static_version="1.83.0",
            check_url="https://forge.rust-lang.org/channel-releases.html",
            static_eol="Rolling release (6 week cycle)",
        ),
        # ── Databases ───────────────────────────────────────────────────
        KnownTechnology(
            key="postgresql",
            category="database",
            api=API_LIFECYCLE,
            eol_slugs=("postgresql",),
            static_version="16.6",
            check_url="https://www.postgresql.org/download/",
        ),
        KnownTechnology(
            key="mysql",
            category="database",
            api=API_LIFECYCLE,
            eol_slugs=("mysql",),
            static_version="8.4.3",
            check_url="https://dev.mysql.com/downloads/",
        ),
        KnownTechnology(
            key="mongodb",
            category="database",
            api=API_LIFECYCLE,
            eol_slugs=("mongodb",),
            static_version="8.0",
            check_url="https://www.mongodb.com/try/download/community",
        ),
        KnownTechnology(
            key="redis",
            category="database",
            api=API_LIFECYCLE,
            repos=("redis/redis",),
            eol_slugs=("redis",),
            static_version="7.4.1",
            check_url="https://redis.io/download/",
        ),
        # ── DevOps and infrastructure ───────────────────────────────────
        KnownTechnology(
            key="kubernetes",
            category="orchestration",
            api=API_LIFECYCLE,
            repos=("kubernetes/kubernetes",),
            eol_slugs=("kubernetes",),
            static_version="1.31.3",
            check_url="https://kubernetes.io/releases/",
        ),
        KnownTechnology(
            key="docker",
            category="containerization",
            api=API_LIFECYCLE,
            repos=("moby/moby",),
            eol_slugs=("docker-engine",),
            static_version="27.3.1",
            check_url="https://docs.docker.com/engine/release-notes/",
        ),
        KnownTechnology(
            key="nginx",
            category="webserver",
            api=API_LIFECYCLE,
            eol_slugs=("nginx",),
            static_version="1.27.3",
            check_url="https://nginx.org/en/download.html",
        ),
        KnownTechnology(
            key="elasticsearch",
            category="search",
            api=API_LIFECYCLE,
            repos=("elastic/elasticsearch",),
            eol_slugs=("elasticsearch",),
            static_version="8.15.3",
            check_url="https://www.elastic.co/downloads/elasticsearch",
        ),
        KnownTechnology(
            key="gradle",
            category="build",
            api=API_STATIC,
            repos=("gradle/gradle",),
            static_version="8.11.1",
            check_url="https://gradle.org/releases/",
        ),
        KnownTechnology(
            key="maven",
            category="build",
            api=API_STATIC,
            static_version="3.9.9",
            check_url="https://maven.apache.org/download.cgi",
        ),
    )
}

ALIASES: dict[str, str] = {
    "node": "nodejs",
    "node.js": "nodejs",
    "node js": "nodejs",
    "next": "nextjs",
    "next.js": "nextjs",
    "vue.js": "vue",
    "vuejs": "vue",
    "reactjs": "react",
    "react.js": "react",
    "svelte.js": "svelte",
    "nuxt.js": "nuxt",
    "nuxtjs": "nuxt",
    "express.js": "express",
    "expressjs": "express",
    "ts": "typescript",
    "spring boot": "spring-boot",
    "springboot": "spring-boot",
    "python3": "python",
    "cpython": "python",
    "openjdk": "java",
    "jdk": "java",
    "golang": "go",
    "postgres": "postgresql",
    "psql": "postgresql",
    "mongo": "mongodb",
    "k8s": "kubernetes",
    "docker engine": "docker",
    "docker-engine": "docker",
    "elastic": "elasticsearch",
    "es": "elasticsearch",
}

# Version-exact lifecycle tables, keyed by lifecycle slug.  Keys are
# cycle identifiers; ``label`` formats the cycle for display.
VERSION_EOL: dict[str, dict[str, object]] = {
    "java": {
        "label": "Java {}",
        "cycles": {
            "8": {"eol": "2030-12", "support": "2030-12", "lts": True},
            "11": {"eol": "2026-09", "support": "2024-09", "lts": True},
            "17": {"eol": "2029-09", "support": "2027-09", "lts": True},
            "21": {"eol": "2031-09", "support": "2029-09", "lts": True},
            "22": {"eol": "2025-03", "support": "2025-03", "lts": False},
            "23": {"eol": "2025-09", "support": "2025-09", "lts": False},
            "24": {"eol": "2026-03", "support": "2026-03", "lts": False},
            "25": {"eol": "2033-09", "support": "2031-09", "lts": True},
        },
    },
    "nodejs": {
        "label": "Node.js {}",
        "cycles": {
            "16": {"eol": "2024-04-30", "support": "2023-10-30", "lts": True},
            "18": {"eol": "2025-04-30", "support": "2024-10-30", "lts": True},
            "20": {"eol": "2026-04-30", "support": "2025-10-30", "lts": True},
            "21": {"eol": "2024-06-01", "support": "2024-06-01", "lts": False},
            "22": {"eol": "2027-04-30", "support": "2026-10-30", "lts": True},
            "23": {"eol": "2025-06-01", "support": "2025-06-01", "lts": False},
            "24": {"eol": "2028-04-30", "support": "2026-10-20", "lts": True},
        },
    },
    "python": {
        "label": "Python {}",
        "cycles": {
            "3.8": {"eol": "2024-10", "support": "2024-10", "lts": False},
            "3.9": {"eol": "2025-10", "support": "2025-10", "lts": False},
            "3.10": {"eol": "2026-10", "support": "2026-10", "lts": False},
            "3.11": {"eol": "2027-10", "support": "2027-10", "lts": False},
            "3.12": {"eol": "2028-10", "support": "2028-10", "lts": False},
            "3.13": {"eol": "2029-10", "support": "2029-10", "lts": False},
            "3.14": {"eol": "2030-10", "support": "2030-10", "lts": False},
        },
    },
}

# Last-resort lifecycle phrases keyed by canonical key.
EOL_PATTERNS: dict[str, str] = {
    "react": "Major versions supported ~18-24 months by Meta",
    "vue": "Vue 2 EOL: December 2023, Vue 3: Active",
    "angular": "Major versions: 18 months LTS support",
    "nodejs": "LTS versions: 30 months (18 months active + 12 months maintenance)",
    "java": "Java 8: 2030, Java 11: 2026, Java 17: 2029, Java 21: 2031, Java 25: 2033 (LTS)",
    "python": "Major versions: ~5 years support",
    "spring-boot": "OSS: ongoing, Commercial support available",
    "nextjs": "Major versions: ~12-18 months support",
}


@dataclass(frozen=True)
class Insights:
    recommendations: tuple[str, ...] = ()
    next_steps: tuple[str, ...] = field(default_factory=tuple)


CATEGORY_INSIGHTS: dict[str, Insights] = {
    "frontend": Insights(
        recommendations=(
            "🎨 Consider performance impact of framework updates",
            "📱 Ensure mobile compatibility with new version",
            "🧪 Test component rendering thoroughly",
        ),
        next_steps=(
            "Review breaking changes in release notes",
            "Update development dependencies",
            "Run comprehensive testing suite",
        ),
    ),
    "backend": Insights(
        recommendations=(
            "🔒 Review security patches in newer versions",
            "📊 Monitor performance after upgrade",
            "🔄 Plan for backward compatibility",
        ),
        next_steps=(
            "Set up staging environment testing",
            "Review API compatibility",
            "Plan gradual rollout strategy",
        ),
    ),
    "database": Insights(
        recommendations=(
            "💾 Backup data before upgrade",
            "🔄 Test migration scripts",
            "📈 Monitor query performance post-upgrade",
        ),
        next_steps=(
            "Schedule maintenance window",
            "Prepare rollback plan",
            "Test backup restoration",
        ),
    ),
    "language": Insights(
        recommendations=(
            "🔧 Check dependency compatibility",
            "📚 Review deprecated features",
            "⚡ Leverage new performance improvements",
        ),
        next_steps=(
            "Audit codebase for deprecated features",
            "Update CI/CD pipeline",
            "Train team on new features",
        ),
    ),
    "runtime": Insights(
        recommendations=(
            "🔒 Runtime security updates are critical",
            "⚡ Performance improvements in newer versions",
            "📦 Check ecosystem package compatibility",
        ),
        next_steps=(
            "Review runtime release notes",
            "Test with updated packages",
            "Update deployment configurations",
        ),
    ),
}

DEFAULT_INSIGHTS = Insights(
    recommendations=(
        "🔍 Review technology-specific release notes",
        "🧪 Test in development environment first",
        "📊 Monitor system metrics after upgrade",
    ),
)

PRIORITY_NEXT_STEPS: dict[str, tuple[str, ...]] = {
    "critical": (
        "🚨 IMMEDIATE: Schedule upgrade within 1-2 weeks",
        "📋 Create detailed upgrade plan",
        "🧪 Set up testing environment",
        "👥 Assign dedicated team members",
    ),
    "high": (
        "📅 Schedule upgrade within next quarter",
        "📖 Review migration documentation",
        "🧪 Begin compatibility testing",
        "💬 Communicate timeline to stakeholders",
    ),
    "medium": (
        "📆 Include in next major release cycle",
        "👀 Monitor for security advisories",
        "📚 Stay updated with release notes",
        "🔍 Evaluate new features and benefits",
    ),
    "low": (
        "✅ Continue monitoring for updates",
        "📈 Track performance metrics",
        "🔔 Set up automated update notifications",
    ),
}
