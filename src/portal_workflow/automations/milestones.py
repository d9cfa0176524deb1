"""Default milestone templates per project type."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from portal_workflow.automations.gateway import PortalGateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MilestoneTemplate:
    name: str
    description: str
    estimated_days: int
    deliverables: tuple[str, ...] = ()


DEFAULT_MILESTONES: dict[str, tuple[MilestoneTemplate, ...]] = {
    "simple-site": (
        MilestoneTemplate(
            "Discovery & Planning",
            "Initial consultation, requirements gathering, and project planning",
            3,
            ("Project brief", "Sitemap", "Content outline"),
        ),
        MilestoneTemplate(
            "Design & Development",
            "Visual design, development, and content integration",
            10,
            ("Design mockups", "Responsive site build", "Content integration"),
        ),
        MilestoneTemplate(
            "Testing & Launch",
            "Quality assurance, client review, and deployment",
            14,
            ("Cross-browser testing", "Mobile testing", "Live deployment"),
        ),
    ),
    "business-site": (
        MilestoneTemplate(
            "Discovery",
            "Business analysis, competitor research, and requirements definition",
            5,
            ("Discovery document", "Competitor analysis", "Feature requirements"),
        ),
        MilestoneTemplate(
            "Design",
            "Brand integration, wireframes, and visual design",
            12,
            ("Wireframes", "Style guide", "Design mockups"),
        ),
        MilestoneTemplate(
            "Development",
            "Frontend development, CMS setup, and functionality implementation",
            22,
            ("Responsive build", "CMS configuration", "Contact forms"),
        ),
        MilestoneTemplate(
            "Content Integration",
            "Content population, SEO optimization, and media integration",
            27,
            ("Page content", "SEO setup", "Image optimization"),
        ),
        MilestoneTemplate(
            "Testing & Launch",
            "Comprehensive testing, training, and production deployment",
            32,
            ("QA testing", "Client training", "Live deployment"),
        ),
    ),
    "ecommerce-site": (
        MilestoneTemplate(
            "Discovery & Planning",
            "Business requirements, product catalog analysis, and platform selection",
            7,
            ("Requirements document", "Platform recommendation", "Product structure"),
        ),
        MilestoneTemplate(
            "Design",
            "Store design, product page layouts, and checkout flow design",
            14,
            ("Store wireframes", "Product page designs", "Checkout flow"),
        ),
        MilestoneTemplate(
            "Development",
            "Platform setup, theme customization, and core functionality",
            28,
            ("Store setup", "Payment integration", "Shipping configuration"),
        ),
        MilestoneTemplate(
            "Product Setup",
            "Product import, inventory setup, and categorization",
            35,
            ("Product catalog", "Inventory system", "Category structure"),
        ),
        MilestoneTemplate(
            "Testing & Launch",
            "Order testing, payment verification, and production launch",
            45,
            ("Order flow testing", "Payment testing", "Store launch"),
        ),
    ),
    "web-app": (
        MilestoneTemplate(
            "Discovery & Architecture",
            "Requirements analysis, technical architecture, and project planning",
            10,
            ("Technical spec", "Architecture diagram", "Project roadmap"),
        ),
        MilestoneTemplate(
            "UI/UX Design",
            "User research, wireframes, and interface design",
            20,
            ("User flows", "Wireframes", "UI design system"),
        ),
        MilestoneTemplate(
            "Core Development",
            "Backend development, API creation, and core functionality",
            40,
            ("Backend API", "Database schema", "Core features"),
        ),
        MilestoneTemplate(
            "Frontend Integration",
            "Frontend development and API integration",
            50,
            ("Frontend application", "API integration", "User authentication"),
        ),
        MilestoneTemplate(
            "Testing & Deployment",
            "Testing, bug fixes, and production deployment",
            60,
            ("Test coverage", "Bug fixes", "Production deployment"),
        ),
    ),
    "maintenance": (
        MilestoneTemplate(
            "Month 1 - Setup",
            "Initial audit, setup monitoring, and establish maintenance schedule",
            30,
            ("Site audit", "Monitoring setup", "Maintenance schedule"),
        ),
        MilestoneTemplate(
            "Month 2 - Optimization",
            "Performance optimization and security updates",
            60,
            ("Performance report", "Security patches", "Optimization updates"),
        ),
        MilestoneTemplate(
            "Month 3 - Review",
            "Quarterly review and planning for next period",
            90,
            ("Quarterly report", "Next period plan", "Recommendations"),
        ),
    ),
    "other": (
        MilestoneTemplate(
            "Phase 1 - Planning",
            "Requirements gathering and project planning",
            7,
            ("Project plan", "Requirements document"),
        ),
        MilestoneTemplate(
            "Phase 2 - Execution",
            "Primary work phase - design and development",
            21,
            ("Design deliverables", "Development work"),
        ),
        MilestoneTemplate(
            "Phase 3 - Completion",
            "Final review, testing, and project handoff",
            28,
            ("Final deliverables", "Testing", "Project handoff"),
        ),
    ),
}

# Checked in order; the first keyword contained in the normalized type wins.
_TYPE_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("simple", "simple-site"),
    ("landing", "simple-site"),
    ("personal", "simple-site"),
    ("business", "business-site"),
    ("corporate", "business-site"),
    ("portfolio", "business-site"),
    ("ecommerce", "ecommerce-site"),
    ("e-commerce", "ecommerce-site"),
    ("shop", "ecommerce-site"),
    ("store", "ecommerce-site"),
    ("webapp", "web-app"),
    ("application", "web-app"),
    ("dashboard", "web-app"),
    ("saas", "web-app"),
    ("retainer", "maintenance"),
    ("support", "maintenance"),
    ("custom", "other"),
)


def normalize_project_type(project_type: str | None) -> str:
    """Map a free-form project type onto a ``DEFAULT_MILESTONES`` key.

    >>> normalize_project_type("Business Site")
    'business-site'
    >>> normalize_project_type("Online Shop")
    'ecommerce-site'
    """

    if not project_type:
        return "other"

    normalized = re.sub(r"[_\s]+", "-", project_type.strip().lower())
    normalized = re.sub(r"[^a-z0-9-]", "", normalized)
    if normalized in DEFAULT_MILESTONES:
        return normalized

    for keyword, mapped in _TYPE_KEYWORDS:
        if keyword in normalized:
            return mapped
    return "other"


def milestone_templates(project_type: str | None) -> tuple[MilestoneTemplate, ...]:
    return DEFAULT_MILESTONES[normalize_project_type(project_type)]


def generate_default_milestones(
    gateway: PortalGateway,
    project_id: int,
    project_type: str | None,
    *,
    start_date: date | None = None,
) -> int:
    """Create the default milestones for a project; returns how many were created.

    Projects that already have milestones are left alone.
    """

    existing = gateway.count_milestones(project_id)
    if existing:
        logger.info(
            "Project already has milestones, skipping generation",
            extra={"project_id": project_id, "existing": existing},
        )
        return 0

    start = start_date or datetime.now(tz=UTC).date()
    templates = milestone_templates(project_type)
    for template in templates:
        gateway.create_milestone(
            project_id,
            title=template.name,
            description=template.description,
            due_date=(start + timedelta(days=template.estimated_days)).isoformat(),
            deliverables=list(template.deliverables),
        )

    logger.info(
        "Generated default milestones",
        extra={
            "project_id": project_id,
            "project_type": normalize_project_type(project_type),
            "milestones_created": len(templates),
        },
    )
    return len(templates)
