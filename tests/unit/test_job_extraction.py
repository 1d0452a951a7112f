"""Tests for turning job postings into structured hiring fields."""

import json

from fakes import FakeChatModel
from job_extraction import extract_job_info, extract_skills, fallback_extraction
from models import JobExtraction

POSTING = (
    "Senior Backend Engineer\n"
    "We need a senior engineer with Python, Django, Postgres and k8s experience. Full-time, remote."
)


class TestExtractSkills:
    def test_aliases_normalized_in_order(self) -> None:
        assert extract_skills(POSTING) == ["Python", "Django", "PostgreSQL", "Kubernetes"]

    def test_duplicates_collapse(self) -> None:
        assert extract_skills("JS, javascript and TS; Node.js or nodejs.") == ["JavaScript", "TypeScript", "Node.js"]

    def test_no_known_skills(self) -> None:
        assert extract_skills("Friendly people wanted") == []


class TestFallbackExtraction:
    def test_keywords(self) -> None:
        extraction = fallback_extraction(POSTING)
        assert extraction.name == "Senior Backend Engineer"
        assert extraction.project_type == "Backend"
        assert extraction.experience_level == "senior"
        assert extraction.employment_type == "full-time"
        assert extraction.remote_policy == "remote"
        assert extraction.location is None

    def test_keywords_inside_words_do_not_match(self) -> None:
        extraction = fallback_extraction("Game studios building community tools")
        assert extraction.project_type is None

    def test_name_capped(self) -> None:
        assert len(fallback_extraction("x" * 100).name) == 60

    def test_blank_first_lines_skipped(self) -> None:
        assert fallback_extraction("\n\n  iOS developer\n").project_type == "Mobile"
        assert fallback_extraction("\n\n  iOS developer\n").name == "iOS developer"


class TestExtractJobInfo:
    async def test_model_answer(self) -> None:
        reply = json.dumps({
            "name": "Rust backend, Sydney",
            "skills": ["Rust", "PostgreSQL"],
            "location": "Sydney",
            "project_type": "Backend",
            "salary_min": 120000,
            "salary_max": 150000,
            "salary_period": "yearly",
        })
        model = FakeChatModel([reply])
        extraction = await extract_job_info("Rust backend role in Sydney", model=model)
        assert extraction.name == "Rust backend, Sydney"
        assert extraction.location == "Sydney"
        assert extraction.salary_max == 150000
        assert "JSON schema" in model.calls[0][1].content

    async def test_missing_name_filled_from_first_line(self) -> None:
        model = FakeChatModel([json.dumps({"skills": ["Go"]})])
        extraction = await extract_job_info("Go platform engineer\nBerlin", model=model)
        assert extraction.name == "Go platform engineer"
        assert extraction.skills == ["Go"]

    async def test_unparseable_answer_falls_back(self) -> None:
        extraction = await extract_job_info(POSTING, model=FakeChatModel(["I cannot help with that."]))
        assert extraction == fallback_extraction(POSTING)

    async def test_invalid_field_falls_back(self) -> None:
        model = FakeChatModel([json.dumps({"name": "x", "project_type": "Cooking"})])
        extraction = await extract_job_info(POSTING, model=model)
        assert extraction.project_type == "Backend"

    async def test_model_error_falls_back(self) -> None:
        extraction = await extract_job_info(POSTING, model=FakeChatModel([RuntimeError("connection refused")]))
        assert extraction.skills == ["Python", "Django", "PostgreSQL", "Kubernetes"]


class TestToBrief:
    def test_carries_matching_fields(self) -> None:
        extraction = JobExtraction(name="Go", skills=["Go"], location="Berlin", project_type="Backend",
                                   salary_min=90000)
        brief = extraction.to_brief()
        assert brief.required_skills == ["Go"]
        assert brief.preferred_location == "Berlin"
        assert brief.project_type == "Backend"
