"""FastAPI routes for saved briefs and their candidate results."""

import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from auth import current_user_id
from github.client import GitHubClient, get_github_client
from models import (
    ResultStatus,
    SonarBriefCreate,
    SonarBriefOut,
    SonarBriefUpdate,
    SonarResultOut,
    SonarSearchSummary,
    SonarStatusUpdate,
)
from .search import run_sonar_search
from .store import ForbiddenError, NotFoundError, SonarStore, get_sonar_store

# Create router for Sonar endpoints
router = APIRouter(prefix="/api/sonar", tags=["sonar"])


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, ForbiddenError):
        return HTTPException(status_code=403, detail=str(e))
    return HTTPException(status_code=404, detail=str(e))


# ============================================================================
# Brief Routes
# ============================================================================

@router.post("/briefs", response_model=SonarBriefOut, status_code=201)
async def create_brief(
    body: SonarBriefCreate,
    user_id: str = Depends(current_user_id),
    store: SonarStore = Depends(get_sonar_store),
):
    """
    Save a hiring brief so it can be searched again later.

    Args:
        body: Brief name, description and the structured hiring fields

    Returns:
        The stored brief with empty result counts
    """
    return await asyncio.to_thread(store.create_brief, user_id, body)


@router.get("/briefs", response_model=list[SonarBriefOut])
async def list_briefs(
    user_id: str = Depends(current_user_id),
    store: SonarStore = Depends(get_sonar_store),
):
    """
    List the caller's briefs.

    Returns:
        Briefs newest first, each with its total and unseen result counts
    """
    return await asyncio.to_thread(store.list_briefs, user_id)


@router.get("/briefs/{brief_id}", response_model=SonarBriefOut)
async def get_brief(
    brief_id: str,
    user_id: str = Depends(current_user_id),
    store: SonarStore = Depends(get_sonar_store),
):
    """
    Get one of the caller's briefs.

    Briefs owned by other users are reported as missing.

    Args:
        brief_id: Brief to fetch

    Returns:
        The brief with its total and unseen result counts
    """
    try:
        return await asyncio.to_thread(store.get_brief, user_id, brief_id)
    except NotFoundError as e:
        raise _http_error(e)


@router.patch("/briefs/{brief_id}", response_model=SonarBriefOut)
async def update_brief(
    brief_id: str,
    body: SonarBriefUpdate,
    user_id: str = Depends(current_user_id),
    store: SonarStore = Depends(get_sonar_store),
):
    """
    Change some fields of a brief.

    Args:
        brief_id: Brief to update
        body: Only the fields present in the request are changed

    Returns:
        The updated brief with its result counts
    """
    try:
        return await asyncio.to_thread(store.update_brief, user_id, brief_id, body)
    except NotFoundError as e:
        raise _http_error(e)


@router.delete("/briefs/{brief_id}", status_code=204)
async def delete_brief(
    brief_id: str,
    user_id: str = Depends(current_user_id),
    store: SonarStore = Depends(get_sonar_store),
):
    """
    Delete a brief together with all of its results.

    Args:
        brief_id: Brief to delete

    Returns:
        An empty 204 response
    """
    try:
        await asyncio.to_thread(store.delete_brief, user_id, brief_id)
    except NotFoundError as e:
        raise _http_error(e)
    return Response(status_code=204)


@router.post("/briefs/{brief_id}/search", response_model=SonarSearchSummary)
async def search_brief(
    brief_id: str,
    user_id: str = Depends(current_user_id),
    store: SonarStore = Depends(get_sonar_store),
    client: GitHubClient = Depends(get_github_client),
):
    """
    Look for new candidates for a brief.

    Builds web queries from the brief, skips usernames already found for it,
    scores each new profile and keeps the best matches.

    Args:
        brief_id: Brief to search for

    Returns:
        How many profiles were examined and how many new candidates were saved
    """
    try:
        return await run_sonar_search(store, client, user_id, brief_id)
    except NotFoundError as e:
        raise _http_error(e)


# ============================================================================
# Result Routes
# ============================================================================

@router.get("/briefs/{brief_id}/results", response_model=list[SonarResultOut])
async def list_results(
    brief_id: str,
    status: Optional[ResultStatus] = Query(None, description="Only results in this status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(current_user_id),
    store: SonarStore = Depends(get_sonar_store),
):
    """
    Candidates found for a brief, best match first.

    Args:
        brief_id: Brief whose results to list
        status: Optional workflow status filter (new, viewed, saved, contacted, dismissed)
        limit: Page size
        offset: Rows to skip

    Returns:
        Stored candidates with their scores, reasons and review status
    """
    try:
        return await asyncio.to_thread(store.list_results, user_id, brief_id, status, limit, offset)
    except NotFoundError as e:
        raise _http_error(e)


@router.patch("/results/{result_id}", response_model=SonarResultOut)
async def update_result_status(
    result_id: str,
    body: SonarStatusUpdate,
    user_id: str = Depends(current_user_id),
    store: SonarStore = Depends(get_sonar_store),
):
    """
    Move a candidate through the review workflow.

    Args:
        result_id: Result to update
        body: New status and optional notes

    Returns:
        The updated result
    """
    try:
        return await asyncio.to_thread(store.update_result_status, user_id, result_id, body.status, body.notes)
    except (NotFoundError, ForbiddenError) as e:
        raise _http_error(e)
