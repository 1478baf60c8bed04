"""Prompt scaffolding for the marketing & PR consultant."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Optional

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .assessment import Assessment
    from .conversation import Message
    from .profile import BusinessProfile
    from .proposal import BusinessContext

NOT_PROVIDED = "Not provided"
PARAGRAPH_BREAK = "\n\n"

APOLOGY_MESSAGE = (
    "I apologize, but I encountered an error. Please try again."
)

RECOMMENDATIONS_FALLBACK = (
    "Detailed recommendations will be provided based on the consultation "
    "analysis."
)

CONSULTANT_ROLE = """You are an expert Marketing and PR consultant with 30+ years of experience. Your role is to:
1. Gather comprehensive business requirements through adaptive questioning
2. Provide contextual assessments based on user responses
3. Offer expert recommendations that prevent revenue loss and maximize ROI
4. Ask intelligent follow-up questions when users seem stuck or provide insufficient detail

Key principles:
- Be professional yet approachable
- Ask one focused question at a time
- Provide specific, actionable insights
- Reference industry best practices
- Help users understand what they actually need vs what they think they need
- Focus on business outcomes and revenue impact"""

PROFILE_GUIDANCE = (
    "Use this verified business information to provide highly personalized "
    "recommendations. Reference their specific industry, company size, and "
    "role when giving advice. Tailor your questions and suggestions to their "
    "business context."
)

ASSESSMENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "assessments": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "category": {"type": "string"},
                    "score": {"type": "number"},
                    "insights": {
                        "type": "array",
                        "items": {"type": "string"},
                    },
                },
            },
        }
    },
}

REPORT_SECTIONS = (
    "Executive Summary",
    "Business Context Analysis",
    "Key Findings & Assessments",
    "Strategic Recommendations",
    "Next Steps & Action Items",
    "Implementation Timeline",
)


def _value(value: Optional[str]) -> str:
    if value is None:
        return NOT_PROVIDED
    text = str(value).strip()
    return text or NOT_PROVIDED


def build_system_prompt(profile: Optional["BusinessProfile"]) -> str:
    """Compose the consultant system instruction for a client profile."""

    if profile is None:
        lines = ["- Profile: " + NOT_PROVIDED]
    else:
        lines = [
            f"- Name: {_value(profile.full_name)}",
            f"- Company: {_value(profile.company_name)}",
            f"- Industry: {_value(profile.industry)}",
            f"- Company Size: {_value(profile.company_size.value)}",
            f"- Job Title: {_value(profile.job_title)}",
            f"- Business Description: {_value(profile.business_description)}",
            f"- Contact: {_value(profile.company_email)}",
        ]
    return "\n\n".join(
        [
            CONSULTANT_ROLE,
            "Client Business Profile:\n" + "\n".join(lines),
            PROFILE_GUIDANCE,
        ]
    )


def build_welcome_message(profile: "BusinessProfile") -> str:
    """Personalised opening message shown once a profile is known."""

    industry = profile.industry
    size = profile.company_size.value
    focus = ""
    if profile.business_description:
        focus = f", focusing on: {profile.business_description}"
    return (
        f"Welcome {profile.full_name}! I'm your AI Marketing & PR "
        "Requirements Consultant, and I'm excited to help "
        f"{profile.company_name} succeed in marketing and public relations.\n\n"
        f"Based on your profile, I can see you're in the {industry} industry "
        f"with a {size} company{focus}.\n\n"
        "I'll guide you through a series of adaptive questions to understand "
        "your specific business context, challenges, and goals. Based on 30+ "
        "years of professional experience, I'll provide you with:\n\n"
        f"• Detailed contextual assessments tailored to {industry}\n"
        f"• Expert recommendations for {size} businesses\n"
        "• Actionable strategies to maximize ROI in your market\n"
        f"• Professional insights to prevent common pitfalls in {industry}\n\n"
        "Let's dive deeper: What are your primary marketing and PR challenges "
        "right now? Are you looking to increase brand awareness, generate "
        "leads, improve customer retention, or something else entirely?"
    )


def format_transcript(
    messages: Iterable["Message"],
    separator: str = "\n",
) -> str:
    return separator.join(
        f"{message.role}: {message.content}" for message in messages
    )


def format_assessments(assessments: Iterable["Assessment"]) -> str:
    return "\n".join(
        f"{item.category}: {item.score:g}/100 - {', '.join(item.insights)}"
        for item in assessments
    )


def build_assessment_prompt(
    messages: Iterable["Message"],
    latest_reply: str,
) -> str:
    return (
        "Based on the conversation history, generate a business assessment "
        "with categories, scores (0-100), and key insights. Focus on "
        "marketing readiness, brand positioning, target audience clarity, and "
        "strategic alignment.\n\n"
        f"Conversation context: {format_transcript(messages)}\n\n"
        f"Latest response: {latest_reply}"
    )


def build_recommendations_prompt(
    messages: Iterable["Message"],
    assessments: Iterable["Assessment"],
    context: "BusinessContext",
) -> str:
    return (
        "Based on this marketing consultation session, generate "
        "comprehensive strategic recommendations:\n\n"
        f"Messages: {format_transcript(messages, separator=PARAGRAPH_BREAK)}\n\n"
        f"Assessments: {format_assessments(assessments)}\n\n"
        f"Business Context: Industry: {context.industry}, Size: "
        f"{context.size}, Goals: {context.goals}, Challenges: "
        f"{context.challenges}\n\n"
        "Provide detailed, actionable recommendations that address the "
        "specific needs and challenges identified during the consultation. "
        "Focus on practical strategies that can drive business growth and "
        "improve marketing effectiveness."
    )


def build_report_prompt(
    messages: Iterable["Message"],
    assessments: Iterable["Assessment"],
) -> str:
    sections = "\n".join(
        f"{index}. {title}"
        for index, title in enumerate(REPORT_SECTIONS, start=1)
    )
    return (
        "Generate a comprehensive Marketing & PR Requirements Report based on "
        "this consultation session:\n\n"
        f"Messages: {format_transcript(messages, separator=PARAGRAPH_BREAK)}\n\n"
        f"Assessments: {format_assessments(assessments)}\n\n"
        f"Create a professional report with:\n{sections}\n\n"
        "Format as a detailed business document."
    )
