"""Outreach email drafts for candidates."""

from models import EmailDraft, EmailDraftRequest

MAX_SKILLS_MENTIONED = 3

BODY_TEMPLATE = """Hi {first_name},

I came across your GitHub profile and was impressed by your work. {note}{skills}

We're currently looking for a {role} to join our team at {company}, and I think you could be a great fit.

I'd love to learn more about your experience and share what we're building. Would you be open to a quick chat?

Looking forward to hearing from you!

Best regards,
{signature}"""


def _signature(request: EmailDraftRequest) -> str:
    if not request.sender_name:
        return f"The {request.company_name} Team"
    lines = [request.sender_name]
    if request.sender_title:
        lines.append(request.sender_title)
    lines.append(request.company_name)
    return "\n".join(lines)


def draft_email(request: EmailDraftRequest) -> EmailDraft:
    """Fill the outreach template. Deterministic, no LLM involved."""
    name = request.candidate_name or request.candidate_username
    first_name = name.split(" ")[0]

    skills = ""
    if request.key_skills:
        skills = f"Your expertise in {', '.join(request.key_skills[:MAX_SKILLS_MENTIONED])} caught our attention."
    note = f"{request.personalized_note} " if request.personalized_note else ""

    body = BODY_TEMPLATE.format(
        first_name=first_name,
        note=note,
        skills=skills,
        role=request.role,
        company=request.company_name,
        signature=_signature(request),
    )
    return EmailDraft(
        candidate_username=request.candidate_username,
        candidate_name=name,
        candidate_email=request.candidate_email or None,
        subject=f"Exciting {request.role} Opportunity at {request.company_name}",
        body=body,
        role=request.role,
        company_name=request.company_name,
    )
