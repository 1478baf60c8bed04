"""Fixed copy shared by the Word and PowerPoint proposal templates."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

PROPOSAL_TITLE = "MARKETING & PR STRATEGY PROPOSAL"
CONSULTANT_NAME = "AI Marketing & PR Consultant"
CONSULTANT_COMPANY = "Marketing Consulting Services"
CONSULTANT_EMAIL = "consultant@yourcompany.com"
CONSULTANT_PHONE = "(555) 123-4567"
BRAND_COLOR = "2563EB"
DATE_FORMAT = "%B %d, %Y"

THANK_YOU_LINE = "Thank you for choosing our services!"
CLOSING_LINE = (
    "We look forward to helping you achieve your marketing and PR objectives."
)


@dataclass(frozen=True, slots=True)
class ImplementationPhase:
    """One hard-coded phase of the implementation timeline."""

    title: str
    short_name: str
    duration: str
    activities: Tuple[str, ...]
    summary: str


IMPLEMENTATION_PHASES: Tuple[ImplementationPhase, ...] = (
    ImplementationPhase(
        title="Phase 1 (Weeks 1-2): Strategy Refinement & Planning",
        short_name="Strategy & Planning",
        duration="Weeks 1-2",
        activities=(
            "Detailed market research and competitive analysis",
            "Brand positioning and messaging framework",
            "Target audience persona development",
        ),
        summary="Research, analysis, framework development",
    ),
    ImplementationPhase(
        title="Phase 2 (Weeks 3-6): Content & Campaign Development",
        short_name="Content Development",
        duration="Weeks 3-6",
        activities=(
            "Content strategy and editorial calendar",
            "Marketing materials and collateral creation",
            "PR campaign planning and media outreach",
        ),
        summary="Content creation, campaign planning",
    ),
    ImplementationPhase(
        title="Phase 3 (Weeks 7-12): Execution & Optimization",
        short_name="Execution & Launch",
        duration="Weeks 7-12",
        activities=(
            "Campaign launch and monitoring",
            "Performance tracking and analytics",
            "Continuous optimization and refinement",
        ),
        summary="Campaign launch, monitoring, optimization",
    ),
)

NEXT_STEPS: Tuple[str, ...] = (
    "Review and approve this proposal",
    "Schedule kick-off meeting to finalize strategy details",
    "Begin Phase 1 implementation",
    "Establish regular progress review meetings",
)

# (heading, detail) pairs for the deck's next-steps slide.
DECK_NEXT_STEPS: Tuple[Tuple[str, str], ...] = (
    (
        "1. Proposal Review & Approval",
        "Review proposal details and provide feedback",
    ),
    ("2. Project Kick-off Meeting", "Schedule initial strategy session"),
    (
        "3. Implementation Begin",
        "Start Phase 1 activities and establish regular check-ins",
    ),
)

# (horizon, actions) pairs for the deck's recommendations slide.
RECOMMENDATION_HORIZONS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (
        "Immediate Actions (0-30 days)",
        (
            "Brand audit and competitive analysis",
            "Target audience research and persona development",
        ),
    ),
    (
        "Short-term Goals (1-3 months)",
        (
            "Content strategy development",
            "PR campaign planning and media outreach",
        ),
    ),
    (
        "Long-term Strategy (3-12 months)",
        (
            "Brand positioning and market expansion",
            "Performance optimization and scaling",
        ),
    ),
)

KEY_OPPORTUNITIES: Tuple[str, ...] = (
    "Brand positioning enhancement",
    "Digital marketing optimization",
    "PR and media relations improvement",
)
