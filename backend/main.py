"""FastAPI backend for GitSignal, the developer-sourcing assistant."""

import asyncio
import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from auth import current_user_id
from chat_agent import ChatAgent
from config import get_settings, setup_logging
from github import router as github_router
from github.client import GitHubClient, get_github_client
from github.profile_analysis import summarize_profile
from github.repo_analysis import RepoAnalysisAgent, get_repo_analysis_agent
from history import SearchHistoryStore, get_history_store
from job_extraction import extract_job_info
from models import (
    ChatRequest,
    EmailDraft,
    EmailDraftRequest,
    JobExtraction,
    JobExtractionRequest,
    ProfileAnalysis,
    ProfileSummary,
    SearchHistoryCreate,
    SearchHistoryResponse,
    SearchType,
)
from outreach import draft_email
from progress import sse_event, sse_stream
from research import research_with_progress
from sonar import router as sonar_router

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="GitSignal",
    description="Find, score and research developers from their GitHub activity",
    version="0.1.0",
)

# Include GitHub and Sonar routes
app.include_router(github_router)
app.include_router(sonar_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


def get_chat_agent(
    client: GitHubClient = Depends(get_github_client),
    history: SearchHistoryStore = Depends(get_history_store),
) -> ChatAgent:
    return ChatAgent(client=client, history=history)


# ============================================================================
# Chat
# ============================================================================

@app.post("/api/chat")
async def chat(
    request: ChatRequest,
    agent: ChatAgent = Depends(get_chat_agent),
    x_user_id: Optional[str] = Header(None),
):
    """
    Chat with the sourcing assistant.

    Args:
        request: Conversation so far, oldest message first
        x_user_id: Caller id, used to record ranked candidates in search history

    Returns:
        SSE stream of assistant messages, tool calls, tool results and progress
    """
    async def event_stream():
        async for event in agent.stream(request.messages, auth_user_id=x_user_id):
            yield sse_event(event)

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


# ============================================================================
# Streaming agents
# ============================================================================

@app.get("/api/repos/analyze/stream")
async def analyze_repository_stream(
    repo_url: str = Query(..., description="https://github.com/owner/repo"),
    hiring_context: Optional[str] = Query(None, description="What the role needs, used to focus the review"),
    timeout: Optional[str] = Query(None, description="Wall-clock limit such as '5m' or '90s'"),
    agent: RepoAnalysisAgent = Depends(get_repo_analysis_agent),
):
    """
    Review a repository in a sandbox and stream the agent's progress.

    Args:
        repo_url: https://github.com/owner/repo
        hiring_context: What the role needs, used to focus the review
        timeout: Wall-clock limit such as '5m' or '90s'

    Returns:
        SSE stream of RepoAnalysisProgress events ending in complete or error
    """
    stream = agent.analyze_with_progress(repo_url, hiring_brief=hiring_context, timeout=timeout)
    return StreamingResponse(sse_stream(stream), media_type="text/event-stream", headers=SSE_HEADERS)


@app.get("/api/research/stream")
async def research_stream(
    query: str = Query(..., min_length=1),
    search_type: SearchType = Query("general"),
    max_results: Optional[int] = Query(None, ge=1, le=25),
    include_domains: Optional[list[str]] = Query(None),
    exclude_domains: Optional[list[str]] = Query(None),
    context: Optional[str] = Query(None),
):
    """
    Search the web, read the results and synthesize a report.

    Args:
        query: What to research
        search_type: Which kind of sources to search (general, github_profiles, linkedin, portfolio, news, technical)
        max_results: Number of web results to read
        include_domains: Only search these domains
        exclude_domains: Never search these domains
        context: Extra guidance for the synthesis

    Returns:
        SSE stream of ResearchProgress events ending in complete or error
    """
    stream = research_with_progress(
        query,
        search_type=search_type,
        max_results=max_results,
        include_domains=include_domains,
        exclude_domains=exclude_domains,
        context=context,
    )
    return StreamingResponse(sse_stream(stream), media_type="text/event-stream", headers=SSE_HEADERS)


# ============================================================================
# Search history
# ============================================================================

@app.get("/api/search-history", response_model=SearchHistoryResponse)
async def list_search_history(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(current_user_id),
    history: SearchHistoryStore = Depends(get_history_store),
):
    """
    List the caller's search history.

    Args:
        limit: Page size
        offset: Rows to skip

    Returns:
        Most recent entry per GitHub profile, newest first
    """
    searches = await asyncio.to_thread(history.recent, user_id, limit, offset)
    return SearchHistoryResponse(searches=searches)


@app.post("/api/search-history")
async def add_search_history(
    body: SearchHistoryCreate,
    user_id: str = Depends(current_user_id),
    history: SearchHistoryStore = Depends(get_history_store),
):
    """
    Record profiles the caller looked at.

    Args:
        body: Profiles plus the query and search type that found them

    Returns:
        How many rows were saved
    """
    if not body.profiles:
        raise HTTPException(status_code=400, detail="No profiles provided")
    saved = await asyncio.to_thread(
        history.add_profiles, user_id, body.profiles, body.search_query, body.search_type
    )
    return {"success": True, "saved": saved}


# ============================================================================
# Outreach
# ============================================================================

@app.post("/api/outreach/draft", response_model=EmailDraft)
async def create_email_draft(request: EmailDraftRequest):
    """
    Draft an editable outreach email for a candidate.

    Args:
        request: Candidate details, the role and the sender

    Returns:
        Subject and body ready for the hiring manager to edit
    """
    return draft_email(request)


# ============================================================================
# Job extraction and profile summaries
# ============================================================================

@app.post("/api/jobs/extract", response_model=JobExtraction)
async def extract_job(request: JobExtractionRequest):
    """
    Turn a job posting into structured hiring fields.

    Falls back to keyword matching when the model is unavailable or its
    answer cannot be parsed.

    Args:
        request: Free-text job posting or search description

    Returns:
        Name, skills, location, project type, salary and role details
    """
    return await extract_job_info(request.description)


@app.post("/api/summary", response_model=ProfileSummary)
async def create_profile_summary(
    analysis: ProfileAnalysis,
    user_id: str = Depends(current_user_id),
):
    """
    Write a recruiter summary for an analyzed profile.

    Args:
        analysis: Output of GET /api/github/users/{username}/analysis

    Returns:
        Markdown summary and whether it came from the model or the template
    """
    logger.info("[API] Summary for %s requested by %s", analysis.metrics.username, user_id)
    return await summarize_profile(analysis)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    settings = get_settings()
    return {
        "status": "ok",
        "services": {
            "github": "authenticated" if settings.github_token else "anonymous",
            "llm": settings.llm_provider,
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
