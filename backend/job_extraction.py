"""Turn a free-text job posting into a structured JobExtraction (and from there a HiringBrief)."""

import logging
import re
from typing import Optional

from langchain_core.messages import HumanMessage, SystemMessage

from llm import Parsed, get_chat_model, message_text, parse_structured, schema_prompt
from models import JobExtraction

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM = """You extract structured hiring information from job postings and developer search descriptions.
Output ONLY valid JSON matching the schema, no markdown or explanation."""

EXTRACTION_RULES = """For salary:
- Convert all salaries to USD using approximate rates (EUR=1.1, GBP=1.27, AUD=0.65, CAD=0.74)
- If salary is given as monthly, convert to yearly for comparison
- Only include salary if explicitly mentioned with numbers

For skills:
- Extract specific technologies, not general terms
- Normalize names (e.g., "JS" -> "JavaScript", "TS" -> "TypeScript", "k8s" -> "Kubernetes")
- Include both required and preferred skills

For location:
- Extract specific city/region if mentioned
- Return null if "remote", "anywhere", or no location preference"""

# lowercase token -> canonical skill name
SKILL_ALIASES = {
    "js": "JavaScript",
    "javascript": "JavaScript",
    "ts": "TypeScript",
    "typescript": "TypeScript",
    "python": "Python",
    "golang": "Go",
    "rust": "Rust",
    "java": "Java",
    "kotlin": "Kotlin",
    "swift": "Swift",
    "ruby": "Ruby",
    "php": "PHP",
    "c++": "C++",
    "c#": "C#",
    "scala": "Scala",
    "elixir": "Elixir",
    "react": "React",
    "vue": "Vue",
    "angular": "Angular",
    "svelte": "Svelte",
    "next.js": "Next.js",
    "nextjs": "Next.js",
    "node": "Node.js",
    "node.js": "Node.js",
    "nodejs": "Node.js",
    "django": "Django",
    "fastapi": "FastAPI",
    "flask": "Flask",
    "rails": "Ruby on Rails",
    "graphql": "GraphQL",
    "postgres": "PostgreSQL",
    "postgresql": "PostgreSQL",
    "mysql": "MySQL",
    "mongodb": "MongoDB",
    "redis": "Redis",
    "kafka": "Kafka",
    "aws": "AWS",
    "gcp": "GCP",
    "azure": "Azure",
    "docker": "Docker",
    "k8s": "Kubernetes",
    "kubernetes": "Kubernetes",
    "terraform": "Terraform",
    "pytorch": "PyTorch",
    "tensorflow": "TensorFlow",
    "solidity": "Solidity",
}

TOKEN_RE = re.compile(r"[A-Za-z][A-Za-z0-9+#.]*")
PUNCTUATION_RE = re.compile(r"[,;:!?()\[\]/|]")

# checked in order; first hit wins
PROJECT_TYPE_KEYWORDS = [
    ("ML/AI", ("machine learning", "ml engineer", "deep learning", "llm", " ai ")),
    ("DevOps", ("devops", " sre ", "site reliability", "platform engineer")),
    ("Web3", ("web3", "blockchain", "smart contract")),
    ("Mobile", ("mobile", " ios ", "android")),
    ("Embedded", ("embedded", "firmware")),
    ("Games", ("game developer", "gamedev", " unity ", "unreal")),
    ("Security", ("security engineer", "appsec", "penetration")),
    ("Data", ("data engineer", "data scientist", "analytics engineer")),
    ("Fullstack", ("full stack", "full-stack", "fullstack")),
    ("Frontend", ("frontend", "front-end", "front end")),
    ("Backend", ("backend", "back-end", "back end")),
]

EXPERIENCE_KEYWORDS = [
    ("principal", ("principal",)),
    ("lead", (" lead ", "tech lead", "staff ")),
    ("senior", ("senior", "sr.", "sr ")),
    ("mid", ("mid-level", "mid level", "intermediate")),
    ("junior", ("junior", "jr.", "jr ", "graduate", "entry level", "entry-level")),
]

EMPLOYMENT_KEYWORDS = [
    ("part-time", ("part-time", "part time")),
    ("contract", ("contract", "contractor")),
    ("freelance", ("freelance",)),
    ("full-time", ("full-time", "full time", "permanent")),
]

REMOTE_KEYWORDS = [
    ("hybrid", ("hybrid",)),
    ("remote", ("remote", "work from home", "anywhere")),
    ("onsite", ("on-site", "onsite", "in office", "in-office")),
]


def _first_match(text: str, table: list[tuple[str, tuple[str, ...]]]) -> Optional[str]:
    for value, needles in table:
        if any(n in text for n in needles):
            return value
    return None


def extract_skills(description: str) -> list[str]:
    """Known technologies mentioned in the text, normalized and in first-seen order."""
    found: dict[str, None] = {}
    for token in TOKEN_RE.findall(description):
        skill = SKILL_ALIASES.get(token.lower().rstrip("."))
        if skill:
            found.setdefault(skill, None)
    return list(found)


def fallback_extraction(description: str) -> JobExtraction:
    """Keyword-based extraction used when the model's answer is unusable."""
    text = f" {' '.join(PUNCTUATION_RE.sub(' ', description.lower()).split())} "
    first_line = next((line.strip() for line in description.splitlines() if line.strip()), "Untitled search")
    return JobExtraction(
        name=first_line,
        skills=extract_skills(description),
        project_type=_first_match(text, PROJECT_TYPE_KEYWORDS),
        experience_level=_first_match(text, EXPERIENCE_KEYWORDS),
        employment_type=_first_match(text, EMPLOYMENT_KEYWORDS),
        remote_policy=_first_match(text, REMOTE_KEYWORDS),
    )


async def extract_job_info(description: str, model=None) -> JobExtraction:
    """Structured fields for a job posting. Falls back to keyword matching when the model fails."""
    prompt = (
        "Extract structured information from this job posting or developer search description.\n\n"
        f"{EXTRACTION_RULES}\n\n"
        f"JSON schema:\n{schema_prompt(JobExtraction)}\n\n"
        f"Description:\n{description}"
    )
    try:
        chat_model = model or get_chat_model()
        reply = await chat_model.ainvoke([SystemMessage(content=EXTRACTION_SYSTEM), HumanMessage(content=prompt)])
    except Exception as e:
        logger.warning("[JobExtraction] Model call failed: %s", e)
        return fallback_extraction(description)

    fallback = fallback_extraction(description)
    outcome = parse_structured(message_text(reply), JobExtraction, defaults={"name": fallback.name})
    if isinstance(outcome, Parsed):
        return outcome.value
    logger.warning("[JobExtraction] Could not parse extraction: %s", outcome.reason[:200])
    return fallback
