"""Integration tests for Home Dojo endpoints."""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient


class TestHabitsAPI:
    @pytest.mark.asyncio
    async def test_check_and_status(self, client: AsyncClient, make_student, auth_header):
        student = await make_student()
        headers = auth_header(student.id)

        response = await client.post(
            "/api/v1/habits/check", json={"student_id": str(student.id), "habit_name": "homework"}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["xp_awarded"] == 10

        status = await client.get(f"/api/v1/habits/status?student_id={student.id}", headers=headers)
        assert status.status_code == 200
        assert status.json() == {
            "completed_habits": ["homework"],
            "daily_xp_earned": 10,
            "daily_xp_cap": 60,
            "total_xp": 10,
            "streak": 1,
        }

    @pytest.mark.asyncio
    async def test_duplicate_check_is_429(self, client: AsyncClient, make_student, auth_header):
        student = await make_student()
        body = {"student_id": str(student.id), "habit_name": "make_bed"}
        await client.post("/api/v1/habits/check", json=body, headers=auth_header(student.id))
        response = await client.post("/api/v1/habits/check", json=body, headers=auth_header(student.id))
        assert response.status_code == 429
        assert response.json()["detail"] == "You already completed this habit today!"

    @pytest.mark.asyncio
    async def test_parent_checks_in_for_child(self, client: AsyncClient, make_student, auth_header):
        child = await make_student()
        response = await client.post(
            "/api/v1/habits/check",
            json={"student_id": str(child.id), "habit_name": "eat_vegetables"},
            headers=auth_header(child.id, "parent"),
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_custom_habit_lifecycle(self, client: AsyncClient, make_student, auth_header):
        student = await make_student()
        headers = auth_header(student.id)

        created = await client.post(
            "/api/v1/habits/custom",
            json={"student_id": str(student.id), "title": "Water the plants", "icon": "🪴"},
            headers=headers,
        )
        assert created.status_code == 200
        habit_id = created.json()["id"]

        listed = await client.get(f"/api/v1/habits/custom?student_id={student.id}", headers=headers)
        assert [h["title"] for h in listed.json()["habits"]] == ["Water the plants"]

        checked = await client.post(
            "/api/v1/habits/check", json={"student_id": str(student.id), "habit_name": habit_id}, headers=headers
        )
        assert checked.json()["xp_awarded"] == 10

        deleted = await client.delete(f"/api/v1/habits/custom/{habit_id}?student_id={student.id}", headers=headers)
        assert deleted.status_code == 200
        listed = await client.get(f"/api/v1/habits/custom?student_id={student.id}", headers=headers)
        assert listed.json()["habits"] == []

        missing = await client.delete(f"/api/v1/habits/custom/{habit_id}?student_id={student.id}", headers=headers)
        assert missing.status_code == 404


class TestFamilyAPI:
    @pytest.mark.asyncio
    async def test_submit_and_status(self, client: AsyncClient, make_student, auth_header):
        student = await make_student()
        headers = auth_header(student.id)
        response = await client.post(
            "/api/v1/family-challenges/submit",
            json={"student_id": str(student.id), "challenge_id": "family_reaction", "won": False},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["xp_awarded"] == 43

        again = await client.post(
            "/api/v1/family-challenges/submit",
            json={"student_id": str(student.id), "challenge_id": "family_reaction", "won": True},
            headers=headers,
        )
        assert again.status_code == 429
        assert again.json()["balance"] == 43

        status = await client.get(f"/api/v1/family-challenges/status?student_id={student.id}", headers=headers)
        assert status.json() == {
            "completed": [{"challenge_id": "family_reaction", "xp_awarded": 43, "won": False}],
            "total_xp_today": 43,
        }

    @pytest.mark.asyncio
    async def test_unknown_challenge(self, client: AsyncClient, make_student, auth_header):
        student = await make_student()
        response = await client.post(
            "/api/v1/family-challenges/submit",
            json={"student_id": str(student.id), "challenge_id": "family_sumo", "won": True},
            headers=auth_header(student.id),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_other_student(self, client: AsyncClient, make_student, auth_header):
        student = await make_student()
        response = await client.get(
            f"/api/v1/family-challenges/status?student_id={student.id}", headers=auth_header(uuid.uuid4())
        )
        assert response.status_code == 403


class TestCoachScope:
    @pytest.mark.asyncio
    async def test_coach_checks_in_for_own_student(self, client: AsyncClient, make_student, club, auth_header):
        student = await make_student()
        response = await client.post(
            "/api/v1/habits/check",
            json={"student_id": str(student.id), "habit_name": "homework"},
            headers=auth_header(uuid.uuid4(), "coach", club.id),
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_coach_of_other_club(self, client: AsyncClient, make_student, auth_header, balance_of):
        student = await make_student()
        response = await client.post(
            "/api/v1/habits/check",
            json={"student_id": str(student.id), "habit_name": "homework"},
            headers=auth_header(uuid.uuid4(), "coach", uuid.uuid4()),
        )
        assert response.status_code == 403
        assert await balance_of(student.id) == 0

    @pytest.mark.asyncio
    async def test_coach_token_without_club(self, client: AsyncClient, make_student, auth_header):
        student = await make_student()
        response = await client.get(
            f"/api/v1/habits/status?student_id={student.id}", headers=auth_header(uuid.uuid4(), "coach")
        )
        assert response.status_code == 403
