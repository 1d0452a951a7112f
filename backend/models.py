"""Pydantic models for the GitSignal API."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================================
# Profile Metrics
# ============================================================================

ActivityLevel = Literal["very_active", "active", "moderate", "low", "inactive"]


class LanguageShare(BaseModel):
    """A language and its share of the user's code, in whole percent."""
    name: str
    percentage: int


class TopRepo(BaseModel):
    name: str
    description: Optional[str] = None
    stars: int = 0
    forks: int = 0
    language: Optional[str] = None
    url: str = ""
    topics: list[str] = []
    last_updated: Optional[str] = None


class ContributionStats(BaseModel):
    push_events: int = 0
    pr_events: int = 0
    issue_events: int = 0


class ProfileSignals(BaseModel):
    """Hireability signals taken straight from the profile."""
    is_hireable: bool = False
    has_email: bool = False
    has_bio: bool = False
    has_website: bool = False


class ProfileMetrics(BaseModel):
    """Metrics derived from a GitHub profile, its repositories and recent events."""
    username: str
    name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    company: Optional[str] = None
    blog: Optional[str] = None
    email: Optional[str] = None
    followers: int = 0
    following: int = 0
    public_repos: int = 0
    created_at: Optional[str] = None
    account_age_years: float = 0.0
    total_stars: int = 0
    total_forks: int = 0
    languages: list[LanguageShare] = []
    topics: list[str] = []
    activity_level: ActivityLevel = "inactive"
    top_repos: list[TopRepo] = []
    recent_events_count: int = 0
    recently_active_repos: int = 0
    contribution_stats: ContributionStats = Field(default_factory=ContributionStats)
    signals: ProfileSignals = Field(default_factory=ProfileSignals)


# ============================================================================
# Hiring Brief & Candidate Scores
# ============================================================================

class HiringBrief(BaseModel):
    """What the hiring manager is looking for. Every field is optional."""
    model_config = ConfigDict(populate_by_name=True)

    required_skills: list[str] = Field(default_factory=list, alias="requiredSkills")
    preferred_location: Optional[str] = Field(None, alias="preferredLocation")
    project_type: Optional[str] = Field(None, alias="projectType")

    @field_validator("required_skills", mode="before")
    @classmethod
    def skills_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [s.strip() for s in v if s and s.strip()]


class CandidateScore(BaseModel):
    """A scored candidate. Built fresh per request, never cached."""
    username: str
    name: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    score: int
    match_reasons: list[str] = []
    concerns: list[str] = []
    activity_level: ActivityLevel
    top_languages: list[str] = []
    topics: list[str] = []
    total_stars: int = 0
    followers: int = 0
    public_repos: int = 0
    recently_active_repos: int = 0
    signals: ProfileSignals = Field(default_factory=ProfileSignals)
    top_repos: list[TopRepo] = []


class FailedProfile(BaseModel):
    username: str
    error: str


class RankingResult(BaseModel):
    candidates: list[CandidateScore] = []
    brief: HiringBrief
    total_analyzed: int = 0
    failed_profiles: Optional[list[FailedProfile]] = None
    error: Optional[str] = None


class RankRequest(BaseModel):
    usernames: list[str] = Field(..., min_length=1)
    brief: HiringBrief = Field(default_factory=HiringBrief)
    search_query: Optional[str] = None


# ============================================================================
# Profile Assessment
# ============================================================================

Recommendation = Literal["strong", "good", "moderate", "weak"]


class ProfileAssessment(BaseModel):
    """Brief-independent judgement of a profile: experience, strengths, concerns and an overall score."""
    estimated_experience: str
    last_activity_days: Optional[int] = None
    average_repo_age_years: float = 0.0
    contribution_pattern: str = "Balanced"
    strengths: list[str] = []
    concerns: list[str] = []
    overall_score: int = Field(..., ge=0, le=100)
    recommendation: Recommendation


class ProfileAnalysis(BaseModel):
    metrics: ProfileMetrics
    assessment: ProfileAssessment


class ProfileSummary(BaseModel):
    username: str
    summary: str
    generated_by: Literal["llm", "fallback"]


# ============================================================================
# Repository Analysis
# ============================================================================

class SkillIndicator(BaseModel):
    indicator: str
    significance: Literal["positive", "neutral", "negative"]
    explanation: str


class Professionalism(BaseModel):
    score: int = Field(..., ge=1, le=10)
    commit_message_quality: Literal["excellent", "good", "average", "poor"]
    code_organization: Literal["excellent", "good", "average", "poor"]
    naming_conventions: Literal["consistent", "mostly_consistent", "inconsistent"]
    error_handling: Literal["comprehensive", "adequate", "minimal", "poor"]


class GitPractices(BaseModel):
    commit_frequency: str
    branch_strategy: Optional[str] = None
    pr_usage: bool = False
    collaboration_signals: list[str] = []


class Complexity(BaseModel):
    level: Literal["trivial", "simple", "moderate", "complex", "very_complex"]
    lines_of_code: Optional[int] = None
    file_count: int = 0
    architecture_pattern: Optional[str] = None


class RawFinding(BaseModel):
    command: str
    purpose: str
    key_findings: str


class RepoAnalysis(BaseModel):
    """Structured assessment of one repository and the developer behind it."""
    repo_name: str
    repo_owner: str
    description: Optional[str] = None
    primary_languages: list[str] = []
    frameworks: list[str] = []
    has_tests: bool = False
    test_coverage: Optional[str] = None
    has_ci: bool = False
    has_documentation: bool = False
    code_quality: Literal["excellent", "good", "average", "below_average", "poor"]
    skill_level: Literal["beginner", "junior", "intermediate", "senior", "expert"]
    skill_indicators: list[SkillIndicator] = []
    professionalism: Professionalism
    git_practices: GitPractices
    complexity: Complexity
    strengths: list[str] = []
    areas_for_growth: list[str] = []
    summary: str = ""
    hiring_recommendation: Literal["strong_yes", "yes", "maybe", "likely_no", "no"]
    raw_findings: list[RawFinding] = []

    @field_validator("strengths")
    @classmethod
    def cap_strengths(cls, v: list[str]) -> list[str]:
        return v[:6]

    @field_validator("areas_for_growth")
    @classmethod
    def cap_growth(cls, v: list[str]) -> list[str]:
        return v[:4]

    @field_validator("summary")
    @classmethod
    def cap_summary(cls, v: str) -> str:
        return v[:500]


class RepoCheck(BaseModel):
    is_valid: bool
    owner: Optional[str] = None
    name: Optional[str] = None
    full_name: Optional[str] = None
    error: Optional[str] = None


# ============================================================================
# Web Research
# ============================================================================

SearchType = Literal["general", "github_profiles", "linkedin", "portfolio", "news", "technical"]


class KeyTheme(BaseModel):
    theme: str
    frequency: Literal["high", "medium", "low"]
    related_results: list[str] = []


class TopResult(BaseModel):
    url: str
    title: str
    relevance_score: float
    snippet: Optional[str] = None
    key_insights: list[str] = []
    content_type: Literal["article", "profile", "documentation", "forum", "news", "other"] = "other"


class Entity(BaseModel):
    name: str
    type: Literal["person", "company", "technology", "product", "location", "other"]
    mentions: int = 1
    context: str = ""


class RawResult(BaseModel):
    url: str
    title: str
    content_preview: str


class SearchAnalysis(BaseModel):
    """LLM synthesis of a multi-result web search."""
    query: str
    search_type: str
    total_results_found: int
    results_analyzed: int
    summary: str
    key_themes: list[KeyTheme] = []
    top_results: list[TopResult] = []
    entities_found: list[Entity] = []
    follow_up_suggestions: list[str] = []
    raw_results: list[RawResult] = []


class WebResult(BaseModel):
    """A single search hit, optionally with its scraped page text."""
    url: str
    title: str = ""
    snippet: str = ""
    content: str = ""


# ============================================================================
# Progress Events
# ============================================================================

TERMINAL_STATUSES = frozenset({"complete", "error"})


class ProgressEvent(BaseModel):
    status: str
    message: str
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @model_validator(mode="after")
    def terminal_payload(self):
        if self.status == "complete" and getattr(self, "result", None) is None:
            raise ValueError("complete events must carry a result")
        if self.status == "error" and not self.error:
            raise ValueError("error events must carry an error message")
        return self


class RepoAnalysisProgress(ProgressEvent):
    status: Literal[
        "validating",
        "spinning_up_sandbox",
        "cloning_repository",
        "executing_command",
        "analyzing",
        "generating_report",
        "complete",
        "error",
    ]
    repo_owner: Optional[str] = None
    repo_name: Optional[str] = None
    command: Optional[str] = None
    purpose: Optional[str] = None
    command_output: Optional[str] = None
    step: Optional[int] = None
    max_steps: Optional[int] = None
    result: Optional[RepoAnalysis] = None


class ResearchProgress(ProgressEvent):
    status: Literal[
        "initializing",
        "searching",
        "scraping",
        "analyzing_result",
        "synthesizing",
        "complete",
        "error",
    ]
    query: Optional[str] = None
    current_step: Optional[int] = None
    total_steps: Optional[int] = None
    current_url: Optional[str] = None
    current_title: Optional[str] = None
    scraped_content: Optional[str] = None
    results_found: Optional[int] = None
    results_processed: Optional[int] = None
    result: Optional[SearchAnalysis] = None


# ============================================================================
# Search History
# ============================================================================

HistorySearchType = Literal["ai_search", "direct", "analyze"]


class SearchHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    github_username: str
    github_name: Optional[str] = None
    github_avatar_url: Optional[str] = None
    github_bio: Optional[str] = None
    github_location: Optional[str] = None
    search_query: Optional[str] = None
    search_type: str = "ai_search"
    created_at: datetime


class HistoryProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    name: Optional[str] = None
    avatar_url: Optional[str] = Field(None, alias="avatarUrl")
    bio: Optional[str] = None
    location: Optional[str] = None


class SearchHistoryCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    profiles: list[HistoryProfile] = []
    search_query: Optional[str] = Field(None, alias="searchQuery")
    search_type: HistorySearchType = Field("ai_search", alias="searchType")


class SearchHistoryResponse(BaseModel):
    searches: list[SearchHistoryEntry]


# ============================================================================
# GitHub Search & Collaboration
# ============================================================================

class ProfileSocials(BaseModel):
    email: Optional[str] = None
    blog: Optional[str] = None
    twitter_username: Optional[str] = None
    company: Optional[str] = None


class ProfileSearchHit(BaseModel):
    """A GitHub profile found through web search."""
    username: str
    url: str
    title: str = ""
    snippet: str = ""
    name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    socials: ProfileSocials = Field(default_factory=ProfileSocials)


class UserSummary(BaseModel):
    username: str
    name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    company: Optional[str] = None
    blog: Optional[str] = None
    email: Optional[str] = None
    twitter_username: Optional[str] = None
    public_repos: Optional[int] = None
    followers: Optional[int] = None
    following: Optional[int] = None
    hireable: bool = False
    created_at: Optional[str] = None


class UserSearchResponse(BaseModel):
    query: str
    total_count: int
    users: list[UserSummary]
    search_tips: list[str] = []


class ContributorInfo(BaseModel):
    """Contributor information model."""
    login: str
    contributions: int = 0
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None


class ContributorsResponse(BaseModel):
    owner: str
    repo: str
    contributors: list[ContributorInfo]
    total_contributors: int
    total_commits: int


class Collaborator(BaseModel):
    login: str
    avatar_url: Optional[str] = None
    type: Literal["contributor", "org", "following", "follower"]
    relationship: str
    repo_name: Optional[str] = None
    degree: int = 1


class RepoNode(BaseModel):
    name: str
    full_name: str
    description: Optional[str] = None
    stars: int = 0
    language: Optional[str] = None
    owner: str
    is_fork: bool = False


class Organization(BaseModel):
    login: str
    avatar_url: Optional[str] = None
    description: Optional[str] = None


class Connection(BaseModel):
    source: str
    target: str
    type: Literal["org", "contributor", "repo"]


class CollaborationData(BaseModel):
    username: str
    source: Literal["graphql", "rest"]
    collaborators: list[Collaborator] = []
    repos: list[RepoNode] = []
    organizations: list[Organization] = []
    connections: list[Connection] = []


# ============================================================================
# Outreach
# ============================================================================

class EmailDraftRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    candidate_username: str = Field(..., alias="candidateUsername")
    candidate_name: Optional[str] = Field(None, alias="candidateName")
    candidate_email: Optional[str] = Field(None, alias="candidateEmail")
    role: str
    company_name: str = Field(..., alias="companyName")
    key_skills: list[str] = Field(default_factory=list, alias="keySkills")
    personalized_note: Optional[str] = Field(None, alias="personalizedNote")
    sender_name: Optional[str] = Field(None, alias="senderName")
    sender_title: Optional[str] = Field(None, alias="senderTitle")


class EmailDraft(BaseModel):
    candidate_username: str
    candidate_name: str
    candidate_email: Optional[str] = None
    subject: str
    body: str
    role: str
    company_name: str


# ============================================================================
# Chat
# ============================================================================

class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1)


# ============================================================================
# Job Extraction
# ============================================================================

ProjectType = Literal[
    "Web", "Mobile", "ML/AI", "DevOps", "Web3", "Embedded", "Games",
    "Security", "Backend", "Frontend", "Fullstack", "Data", "Other",
]


class JobExtractionRequest(BaseModel):
    description: str = Field(..., min_length=1, max_length=20_000)


class JobExtraction(BaseModel):
    """Structured fields pulled out of a job posting. Salaries are USD per year."""
    name: str = Field(..., description="A short, descriptive name for this search (max 60 chars)")
    skills: list[str] = Field(
        default_factory=list,
        description="Technical skills, programming languages, frameworks and tools required",
    )
    location: Optional[str] = Field(None, description="Preferred city or region, null if remote/anywhere")
    project_type: Optional[ProjectType] = Field(None, description="Primary project/role type")
    salary_min: Optional[float] = Field(None, description="Minimum salary in USD, null if not specified")
    salary_max: Optional[float] = Field(None, description="Maximum salary in USD, null if not specified")
    salary_period: Optional[Literal["yearly", "monthly", "hourly"]] = None
    experience_level: Optional[Literal["junior", "mid", "senior", "lead", "principal"]] = None
    employment_type: Optional[Literal["full-time", "part-time", "contract", "freelance"]] = None
    remote_policy: Optional[Literal["remote", "hybrid", "onsite"]] = None
    company_name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def cap_name(cls, v: str) -> str:
        return v.strip()[:60]

    def to_brief(self) -> HiringBrief:
        return HiringBrief(
            required_skills=self.skills,
            preferred_location=self.location,
            project_type=self.project_type,
        )


# ============================================================================
# Sonar (saved briefs)
# ============================================================================

ResultStatus = Literal["new", "viewed", "saved", "contacted", "dismissed"]
SearchFrequency = Literal["daily", "weekly"]


class SonarBriefCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    required_skills: list[str] = Field(default_factory=list, alias="requiredSkills")
    preferred_location: Optional[str] = Field(None, alias="preferredLocation")
    project_type: Optional[str] = Field(None, alias="projectType")
    search_frequency: SearchFrequency = Field("daily", alias="searchFrequency")
    salary_min: Optional[float] = Field(None, alias="salaryMin")
    salary_max: Optional[float] = Field(None, alias="salaryMax")
    salary_period: Optional[str] = Field(None, alias="salaryPeriod")
    experience_level: Optional[str] = Field(None, alias="experienceLevel")
    employment_type: Optional[str] = Field(None, alias="employmentType")
    remote_policy: Optional[str] = Field(None, alias="remotePolicy")
    company_name: Optional[str] = Field(None, alias="companyName")


class SonarBriefUpdate(BaseModel):
    """Partial update. Only fields present in the request are changed."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    required_skills: Optional[list[str]] = Field(None, alias="requiredSkills")
    preferred_location: Optional[str] = Field(None, alias="preferredLocation")
    project_type: Optional[str] = Field(None, alias="projectType")
    is_active: Optional[bool] = Field(None, alias="isActive")
    search_frequency: Optional[SearchFrequency] = Field(None, alias="searchFrequency")
    salary_min: Optional[float] = Field(None, alias="salaryMin")
    salary_max: Optional[float] = Field(None, alias="salaryMax")
    salary_period: Optional[str] = Field(None, alias="salaryPeriod")
    experience_level: Optional[str] = Field(None, alias="experienceLevel")
    employment_type: Optional[str] = Field(None, alias="employmentType")
    remote_policy: Optional[str] = Field(None, alias="remotePolicy")
    company_name: Optional[str] = Field(None, alias="companyName")


class SonarBriefOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str = ""
    required_skills: list[str] = []
    preferred_location: Optional[str] = None
    project_type: Optional[str] = None
    is_active: bool = True
    search_frequency: str = "daily"
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_period: Optional[str] = None
    experience_level: Optional[str] = None
    employment_type: Optional[str] = None
    remote_policy: Optional[str] = None
    company_name: Optional[str] = None
    last_search_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    total_results: int = 0
    new_results: int = 0

    def to_hiring_brief(self) -> HiringBrief:
        return HiringBrief(
            required_skills=self.required_skills,
            preferred_location=self.preferred_location,
            project_type=self.project_type,
        )


class SonarResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    brief_id: str
    github_username: str
    github_name: Optional[str] = None
    github_avatar_url: Optional[str] = None
    github_bio: Optional[str] = None
    github_location: Optional[str] = None
    match_score: Optional[int] = None
    match_reasons: list[str] = []
    concerns: list[str] = []
    top_languages: list[str] = []
    total_stars: Optional[int] = None
    followers: Optional[int] = None
    repo_count: Optional[int] = None
    status: ResultStatus = "new"
    notes: Optional[str] = None
    search_query: Optional[str] = None
    discovered_at: datetime


class SonarStatusUpdate(BaseModel):
    status: ResultStatus
    notes: Optional[str] = None


class SonarSearchSummary(BaseModel):
    brief_id: str
    new_candidates: int
    searched_profiles: int
    failed_profiles: list[FailedProfile] = []
