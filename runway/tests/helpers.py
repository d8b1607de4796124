"""
Shared fixtures for the API tests: an app wired to in-memory storage and
fake coaching/email collaborators.
"""

import unittest

from fastapi.testclient import TestClient

from runway.app import create_app
from runway.db import InMemoryStorage
from runway.dependencies import get_coach_client, get_email_client, get_storage
from runway.gemini import ResponseFeedback


class FakeCoachClient:
    def __init__(self, reply="Lead with your hips and keep your chin level."):
        self.reply = reply
        self.error = None
        self.feedback = ResponseFeedback(
            score=8,
            strengths=["Clear structure", "Warm tone"],
            improvements=["Add a personal example"],
            overall="Strong answer with room for a story.",
        )
        self.messages = []

    def chat(self, message):
        if self.error:
            raise self.error
        self.messages.append(message)
        return self.reply

    def analyze_response(self, question, response, time_taken):
        if self.error:
            raise self.error
        self.messages.append((question, response, time_taken))
        return self.feedback


class FakeEmailClient:
    def __init__(self, error=None, response=None):
        self.error = error
        self.response = response or {"id": "email_123"}
        self.sent = []

    def send(self, to, subject, html):
        self.sent.append((to, subject))
        if self.error:
            raise self.error
        return self.response


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.app = create_app()
        self.storage = InMemoryStorage()
        self.coach = FakeCoachClient()
        self.mailer = None
        self.app.dependency_overrides[get_storage] = lambda: self.storage
        self.app.dependency_overrides[get_coach_client] = lambda: self.coach
        self.app.dependency_overrides[get_email_client] = lambda: self.mailer
        self.client = TestClient(self.app)

    def new_client(self):
        return TestClient(self.app)

    def register(self, username="alice", password="runway-pass", client=None):
        client = client or self.client
        response = client.post(
            "/api/register",
            json={
                "username": username,
                "password": password,
                "email": f"{username}@example.com",
            },
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()
