"""Phased upgrade plans for a tracked technology.

A plan is built from a stored record, so it never needs the network:
the phases, risks and rollback steps come from a hand-written template
chosen by canonical key, and the record's versions, priority and
lifecycle data are filled in.  Technologies without their own template
get the generic one.
"""

import re
from dataclasses import dataclass, field

from .catalog import PRIORITY_NEXT_STEPS
from .exceptions import PlanUnavailable
from .models import UNKNOWN_VERSION, TechnologyRecord
from .normalizer import canonical_key

_LEADING_NUMBER = re.compile(r"\d+")


@dataclass(frozen=True)
class Risk:
    risk: str
    mitigation: str


@dataclass(frozen=True)
class Consideration:
    aspect: str
    consideration: str
    action: str


@dataclass(frozen=True)
class PlanTemplate:
    """Upgrade plan text with ``{tech}``, ``{from_version}``, ``{to_version}``,
    ``{from_major}`` and ``{to_major}`` placeholders."""

    overview: str
    timeline: str
    phases: tuple[tuple[str, tuple[str, ...]], ...]
    risks: tuple[Risk, ...] = ()
    testing: tuple[str, ...] = ()
    rollback: tuple[str, ...] = ()
    resources: tuple[str, ...] = ()
    considerations: tuple[Consideration, ...] = ()


@dataclass
class PlanPhase:
    name: str
    tasks: list[str] = field(default_factory=list)


@dataclass
class UpgradePlan:
    """A filled-in plan for one record.

    Attributes:
        technology: Name as the user entered it.
        from_version: Version in use.
        to_version: Latest known version.
        template: Key of the template the plan was built from.
        priority: Record priority at the time of planning.
        urgency: First next step for that priority.
        eol_date: Lifecycle end for the version in use, if known.
        critical_vulns: Critical advisories against the version in use.
    """

    technology: str
    from_version: str
    to_version: str
    template: str
    overview: str
    timeline: str
    priority: str
    urgency: str
    phases: list[PlanPhase] = field(default_factory=list)
    risks: list[Risk] = field(default_factory=list)
    testing: list[str] = field(default_factory=list)
    rollback: list[str] = field(default_factory=list)
    resources: list[str] = field(default_factory=list)
    considerations: list[Consideration] = field(default_factory=list)
    eol_date: str | None = None
    critical_vulns: int = 0


GENERIC_TEMPLATE = "generic"

PLAN_TEMPLATES: dict[str, PlanTemplate] = {
    "java": PlanTemplate(
        overview=(
            "Java {from_version} → {to_version} upgrade across all services, "
            "bringing performance improvements, new language features and a supported release line."
        ),
        timeline="Estimated timeline: 8-12 weeks for a complete migration",
        phases=(
            (
                "Phase 1: Environment Preparation (Week 1-2)",
                (
                    "Set up Java {to_major} development environments for all developers",
                    "Update CI/CD pipelines to build and test on Java {to_major}",
                    "Create an isolated staging environment with Java {to_major}",
                    "Update build tools (Maven/Gradle) to versions supporting Java {to_major}",
                ),
            ),
            (
                "Phase 2: Dependency & Code Analysis (Week 2-3)",
                (
                    "Run dependency compatibility checks with the Maven/Gradle plugins",
                    "Identify deprecated and removed APIs",
                    "Review third-party library versions and plan their updates",
                    "Document breaking changes and required code modifications",
                ),
            ),
            (
                "Phase 3: Pilot Service Migration (Week 4-5)",
                (
                    "Migrate the least critical service first",
                    "Monitor performance metrics and memory usage of the pilot",
                    "Validate inter-service communication",
                    "Record lessons learned and refine the process",
                ),
            ),
            (
                "Phase 4: Core Services Migration (Week 6-8)",
                (
                    "Migrate core services in priority order",
                    "Use blue-green deployments for each service",
                    "Run the test suite on Java {from_major} and {to_major} side by side",
                    "Validate database connections and persistence layers",
                ),
            ),
            (
                "Phase 5: Full Production Rollout (Week 9-12)",
                (
                    "Migrate the remaining services",
                    "Run end-to-end and load tests",
                    "Monitor production metrics for two weeks",
                    "Decommission Java {from_major} environments",
                ),
            ),
        ),
        risks=(
            Risk(
                "Behaviour differences between services on different Java versions",
                "Keep APIs version-agnostic and backward compatible during the transition",
            ),
            Risk(
                "Memory usage changes affecting container resource allocation",
                "Profile memory and adjust container resource limits",
            ),
            Risk("Third-party library incompatibilities", "Test integrations in isolation with a rollback plan per service"),
            Risk("Performance regressions in production", "Monitor closely and define automated rollback triggers"),
        ),
        testing=(
            "Unit tests on Java {from_major} and {to_major} in parallel",
            "Integration testing across service boundaries",
            "Performance benchmarking (latency, throughput, memory)",
            "Load testing with production-like traffic",
        ),
        rollback=(
            "Keep Java {from_major} container images available",
            "Use feature flags for gradual rollout",
            "Blue-green deployment with instant switchback",
        ),
        resources=(
            "Oracle JDK migration guide: https://docs.oracle.com/en/java/javase/{to_major}/migrate/",
            "Maven/Gradle plugins for Java compatibility checking",
        ),
        considerations=(
            Consideration(
                "Service Discovery",
                "Discovery must work with both Java versions during the transition",
                "Test registry compatibility and health check endpoints",
            ),
            Consideration(
                "Container Orchestration",
                "Resource requests and limits may need adjustment",
                "Monitor memory and CPU usage and update pod specifications",
            ),
            Consideration(
                "Distributed Tracing",
                "Tracing must keep working across version boundaries",
                "Update tracing agent configuration for Java {to_major}",
            ),
        ),
    ),
    "nodejs": PlanTemplate(
        overview="Node.js {from_version} → {to_version} migration with a focus on performance and security fixes.",
        timeline="Estimated timeline: 6-8 weeks for the complete migration",
        phases=(
            (
                "Phase 1: Dependency Analysis (Week 1)",
                (
                    "Audit npm packages for Node.js {to_major} compatibility",
                    "Update the package.json engines field",
                    "Review native modules that need a rebuild",
                ),
            ),
            (
                "Phase 2: Development Environment (Week 2-3)",
                (
                    "Update Docker base images to Node.js {to_major}",
                    "Configure CI/CD pipelines for the new Node.js version",
                    "Test application startup and basic functionality",
                ),
            ),
            (
                "Phase 3: Service Migration (Week 4-6)",
                (
                    "Migrate services in dependency order",
                    "Use blue-green deployments",
                    "Validate inter-service communication",
                ),
            ),
            (
                "Phase 4: Production Deployment (Week 7-8)",
                (
                    "Full production rollout",
                    "Performance monitoring and tuning",
                    "Security audit of the upgraded services",
                ),
            ),
        ),
        risks=(
            Risk("npm package incompatibilities", "Test dependencies thoroughly and keep fallback versions pinned"),
            Risk("Native module compilation issues", "Pre-build modules and test on the target architecture"),
            Risk("Changed performance characteristics", "Load test and monitor before the full rollout"),
        ),
        testing=(
            "Unit tests on Node.js {to_major}",
            "npm audit for security advisories",
            "Load testing with realistic traffic",
        ),
        rollback=(
            "Keep Node.js {from_major} container images available",
            "Use feature flags for gradual rollout",
            "Define automated rollback triggers",
        ),
        resources=("Node.js release notes: https://nodejs.org/en/blog/release/v{to_version}",),
        considerations=(
            Consideration("Event Loop", "Monitor event loop lag on the new version", "Update monitoring dashboards"),
            Consideration("Memory Usage", "V8 changes may affect memory patterns", "Adjust container limits"),
        ),
    ),
    "react": PlanTemplate(
        overview="React {from_version} → {to_version} upgrade of the frontend, adopting the new rendering features.",
        timeline="Estimated timeline: 4-6 weeks for the complete frontend migration",
        phases=(
            (
                "Phase 1: Preparation (Week 1)",
                (
                    "Audit the component library for breaking changes",
                    "Update build tooling and bundler configuration",
                    "Check router and state management compatibility with React {to_major}",
                ),
            ),
            (
                "Phase 2: Component Migration (Week 2-3)",
                (
                    "Migrate shared components first",
                    "Update hooks and lifecycle methods",
                    "Validate micro-frontend integration points",
                ),
            ),
            (
                "Phase 3: Feature Testing (Week 4)",
                (
                    "End-to-end testing of all features",
                    "Cross-browser compatibility testing",
                    "Accessibility audit",
                ),
            ),
            (
                "Phase 4: Production Deployment (Week 5-6)",
                (
                    "Canary deployment to a subset of users",
                    "Monitor user metrics and error rates",
                    "Full production rollout",
                ),
            ),
        ),
        risks=(
            Risk("Component breaking changes", "Test components thoroughly and keep fallback implementations"),
            Risk("Bundle size increases", "Analyze bundles and tune tree-shaking"),
            Risk("Rendering performance regressions", "Profile with React DevTools before the rollout"),
        ),
        testing=("Component unit tests", "Integration testing", "Visual regression testing"),
        rollback=("Keep previous build artifacts", "Feature flags for component switching", "CDN rollback"),
        resources=("React upgrade guide: https://react.dev/blog",),
        considerations=(
            Consideration(
                "Micro-frontends",
                "Compatibility across micro-frontend boundaries",
                "Test module federation with mixed React versions",
            ),
            Consideration("State Management", "Store and context API changes", "Validate state synchronization"),
        ),
    ),
    "spring-boot": PlanTemplate(
        overview="Spring Boot {from_version} → {to_version} migration of the service fleet.",
        timeline="Estimated timeline: 10-14 weeks for an enterprise-grade migration",
        phases=(
            (
                "Phase 1: Framework Analysis (Week 1-2)",
                (
                    "Audit Spring dependencies against the Spring Boot {to_major} compatibility matrix",
                    "Review configuration property changes and deprecated features",
                    "Analyze Spring Security updates",
                ),
            ),
            (
                "Phase 2: Core Services Migration (Week 3-6)",
                (
                    "Migrate shared libraries and common components",
                    "Update Spring Security configurations",
                    "Migrate data access code to the new version",
                ),
            ),
            (
                "Phase 3: Service Integration (Week 7-10)",
                (
                    "Migrate business services in dependency order",
                    "Update service discovery and configuration",
                    "Test distributed tracing and monitoring",
                ),
            ),
            (
                "Phase 4: Production Rollout (Week 11-14)",
                (
                    "Canary deployment with traffic splitting",
                    "Validate security and compliance requirements",
                    "Complete the production migration",
                ),
            ),
        ),
        risks=(
            Risk("Spring Security breaking changes", "Security tests and configuration review for every service"),
            Risk("Data access layer changes", "Database integration tests and transaction boundary checks"),
            Risk("Actuator endpoint changes", "Update monitoring and health check configurations"),
        ),
        testing=("Spring Boot test slices", "Integration testing with Testcontainers", "Security testing"),
        rollback=(
            "Keep Spring Boot {from_version} artifacts",
            "Database migration rollback scripts",
            "Configuration rollback procedures",
        ),
        resources=("Spring Boot migration guides: https://github.com/spring-projects/spring-boot/wiki",),
        considerations=(
            Consideration(
                "Configuration Management",
                "Config server compatibility",
                "Test configuration refresh mechanisms",
            ),
            Consideration("Circuit Breakers", "Resilience library changes", "Update circuit breaker settings"),
        ),
    ),
    "python": PlanTemplate(
        overview="Python {from_version} → {to_version} migration with a focus on performance and new language features.",
        timeline="Estimated timeline: 8-10 weeks for the complete migration",
        phases=(
            (
                "Phase 1: Environment Setup (Week 1-2)",
                (
                    "Create virtual environments for Python {to_version}",
                    "Audit pinned requirements for package compatibility",
                    "Update CI/CD pipelines for the new Python version",
                ),
            ),
            (
                "Phase 2: Code Migration (Week 3-5)",
                (
                    "Run pyupgrade for syntax updates",
                    "Replace deprecated standard library calls and imports",
                    "Check type hints with mypy on the new version",
                ),
            ),
            (
                "Phase 3: Service Testing (Week 6-7)",
                (
                    "Unit and integration tests on the new Python version",
                    "Check web framework and ORM compatibility",
                    "Benchmark critical code paths",
                ),
            ),
            (
                "Phase 4: Production Deployment (Week 8-10)",
                (
                    "Update container images to the new Python version",
                    "Blue-green deployment across services",
                    "Monitor performance and memory usage",
                ),
            ),
        ),
        risks=(
            Risk("Package incompatibilities", "Pin package versions and test extensively"),
            Risk("Standard library removals", "Review the What's New notes and run the full test suite"),
        ),
        testing=("pytest on the new Python version", "tox for multi-version testing", "Performance profiling"),
        rollback=(
            "Keep Python {from_version} container images",
            "Keep lock files for the previous environment",
        ),
        resources=("What's New in Python: https://docs.python.org/3/whatsnew/",),
        considerations=(
            Consideration("WSGI/ASGI", "Web server compatibility with the new version", "Test server configurations"),
            Consideration("Task Queues", "Worker compatibility with the new version", "Validate async task processing"),
        ),
    ),
    GENERIC_TEMPLATE: PlanTemplate(
        overview="{tech} upgrade from {from_version} to {to_version}.",
        timeline="Estimated timeline: 6-10 weeks depending on complexity",
        phases=(
            (
                "Phase 1: Analysis & Planning (Week 1-2)",
                (
                    "Analyze current usage and dependencies",
                    "Review release notes and breaking changes",
                    "Set up test environments",
                ),
            ),
            (
                "Phase 2: Development & Testing (Week 3-5)",
                (
                    "Implement the changes in a development environment",
                    "Update configurations and dependencies",
                    "Run the full test suite",
                ),
            ),
            (
                "Phase 3: Production Deployment (Week 6-8)",
                (
                    "Staged production rollout",
                    "Monitor system metrics",
                    "Complete the deployment",
                ),
            ),
        ),
        risks=(
            Risk("Compatibility issues", "Thorough testing and a rollback plan"),
            Risk("Performance impact", "Monitoring and tuning after each stage"),
        ),
        testing=("Functional testing", "Performance testing", "Integration testing"),
        rollback=("Back up the previous version", "Documented rollback procedure", "Monitoring triggers"),
        resources=("Official documentation",),
        considerations=(
            Consideration("Service Integration", "Service boundaries must stay intact", "Test all integrations"),
        ),
    ),
}


def _major(version: str) -> str:
    match = _LEADING_NUMBER.search(version or "")
    return match.group(0) if match else version


def template_for(record: TechnologyRecord) -> str:
    """Template key for a record: its canonical key if a template exists."""
    key = record.canonical_key or canonical_key(record.technology)
    return key if key in PLAN_TEMPLATES else GENERIC_TEMPLATE


def build_upgrade_plan(record: TechnologyRecord) -> UpgradePlan:
    """Fill in the upgrade plan for a record.

    Raises:
        PlanUnavailable: if the latest version is unknown, so there is no
            upgrade target yet.
    """
    if not record.latest_version or record.latest_version == UNKNOWN_VERSION:
        raise PlanUnavailable(f"Latest version of {record.technology} is unknown; re-analyze it first")

    key = template_for(record)
    template = PLAN_TEMPLATES[key]
    values = {
        "tech": record.technology,
        "from_version": record.current_version,
        "to_version": record.latest_version,
        "from_major": _major(record.current_version),
        "to_major": _major(record.latest_version),
    }

    def fill(text: str) -> str:
        return text.format(**values)

    return UpgradePlan(
        technology=record.technology,
        from_version=record.current_version,
        to_version=record.latest_version,
        template=key,
        overview=fill(template.overview),
        timeline=fill(template.timeline),
        priority=record.ai_priority,
        urgency=PRIORITY_NEXT_STEPS[record.ai_priority][0],
        phases=[PlanPhase(fill(name), [fill(t) for t in tasks]) for name, tasks in template.phases],
        risks=[Risk(fill(r.risk), fill(r.mitigation)) for r in template.risks],
        testing=[fill(t) for t in template.testing],
        rollback=[fill(t) for t in template.rollback],
        resources=[fill(t) for t in template.resources],
        considerations=[
            Consideration(c.aspect, fill(c.consideration), fill(c.action)) for c in template.considerations
        ],
        eol_date=record.eol_date,
        critical_vulns=record.critical_vulns or 0,
    )
