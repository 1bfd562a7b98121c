"""In-process stand-in for the ContestHub REST API."""
from __future__ import annotations

import asyncio
import uuid
from copy import deepcopy

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from contesthub_core import ContestHubClient, Settings

USERS = {
    "alice@example.com": {"_id": "u1", "name": "Alice", "email": "alice@example.com", "role": "user"},
    "bob@example.com": {"_id": "u2", "name": "Bob", "email": "bob@example.com", "role": "user"},
    "creator@example.com": {"_id": "u3", "name": "Cara", "email": "creator@example.com", "role": "creator"},
    "admin@example.com": {"_id": "u4", "name": "Root", "email": "admin@example.com", "role": "admin"},
}

PASSWORD = "secret123"


def make_contest(cid: str, **fields) -> dict:
    contest = {
        "_id": cid,
        "title": f"Contest {cid}",
        "category": "Design",
        "image": "https://example.com/c.png",
        "description": "Make something",
        "taskInstruction": "Send a link",
        "price": 0,
        "prizeMoney": 100,
        "endDate": "2099-01-01T00:00:00.000Z",
        "isActive": True,
        "participants": [],
        "submissions": [],
        "creatorEmail": "creator@example.com",
        "status": "confirmed",
    }
    contest.update(fields)
    return contest


class FakeApi:
    def __init__(self):
        self.users = deepcopy(USERS)
        self.tokens: dict[str, str] = {f"tok-{u['_id']}": email for email, u in self.users.items()}
        self.contests: dict[str, dict] = {}
        self.calls: list[tuple[str, str, str | None, object]] = []
        self.stripe_configured = True
        self.payment_ids: list[str] = []

    def token_for(self, email: str) -> str:
        return f"tok-{self.users[email]['_id']}"

    def add_contest(self, cid: str, **fields) -> dict:
        self.contests[cid] = make_contest(cid, **fields)
        return self.contests[cid]

    def _session_user(self, token: str) -> dict:
        return {**self.users[self.tokens[token]], "token": token}

    # ==================== plumbing ====================

    @web.middleware
    async def record(self, request: web.Request, handler):
        body = None
        if request.can_read_body:
            body = await request.json()
        self.calls.append((request.method, request.path, request.headers.get("Authorization"), body))
        request["body"] = body
        return await handler(request)

    def _auth(self, request: web.Request) -> dict:
        header = request.headers.get("Authorization", "")
        token = header.removeprefix("Bearer ").strip()
        if token not in self.tokens:
            raise web.HTTPUnauthorized(
                text='{"message": "Unauthorized access"}', content_type="application/json"
            )
        return self.users[self.tokens[token]]

    def _contest(self, request: web.Request) -> dict:
        contest = self.contests.get(request.match_info["id"])
        if contest is None:
            raise web.HTTPNotFound(
                text='{"message": "Contest not found"}', content_type="application/json"
            )
        return contest

    def app(self) -> web.Application:
        app = web.Application(middlewares=[self.record])
        app.router.add_post("/auth/login", self.login)
        app.router.add_post("/auth/register", self.register)
        app.router.add_post("/auth/google-login", self.google_login)
        app.router.add_get("/auth/me", self.me)
        app.router.add_put("/auth/me", self.update_me)
        app.router.add_get("/contests", self.list_contests)
        app.router.add_post("/contests", self.create_contest)
        app.router.add_put("/contests/status/{id}", self.set_status)
        app.router.add_get("/contests/{id}", self.get_contest)
        app.router.add_put("/contests/{id}", self.update_contest)
        app.router.add_delete("/contests/{id}", self.delete_contest)
        app.router.add_post("/contests/{id}/register", self.register_contest)
        app.router.add_post("/contests/{id}/submit-task", self.submit_task)
        app.router.add_post("/contests/{id}/declare-winner", self.declare_winner)
        app.router.add_get("/users", self.list_users)
        app.router.add_put("/users/{id}/role", self.set_role)
        app.router.add_get("/packages", self.packages)
        app.router.add_post("/users/buy-package", self.buy_package)
        app.router.add_post("/create-payment-intent", self.payment_intent)
        app.router.add_get("/leaderboard", self.leaderboard)
        return app

    # ==================== auth ====================

    async def login(self, request):
        body = request["body"]
        email = body["email"]
        if email not in self.users or body["password"] != PASSWORD:
            return web.json_response({"message": "Invalid email or password"}, status=401)
        return web.json_response(self._session_user(self.token_for(email)))

    async def register(self, request):
        body = request["body"]
        if body["email"] in self.users:
            return web.json_response({"message": "User already exists"}, status=409)
        uid = f"u{len(self.users) + 1}"
        self.users[body["email"]] = {
            "_id": uid,
            "name": body["name"],
            "email": body["email"],
            "photoURL": body.get("photoURL"),
            "role": "user",
        }
        self.tokens[f"tok-{uid}"] = body["email"]
        return web.json_response(self._session_user(f"tok-{uid}"), status=201)

    async def google_login(self, request):
        body = request["body"]
        if body["email"] not in self.users:
            uid = f"u{len(self.users) + 1}"
            self.users[body["email"]] = {
                "_id": uid,
                "name": body.get("name"),
                "email": body["email"],
                "photoURL": body.get("photoURL"),
                "role": "user",
            }
            self.tokens[f"tok-{uid}"] = body["email"]
        return web.json_response(self._session_user(self.token_for(body["email"])))

    async def me(self, request):
        return web.json_response(self._auth(request))

    async def update_me(self, request):
        user = self._auth(request)
        user.update(request["body"])
        return web.json_response(user)

    # ==================== contests ====================

    async def list_contests(self, request):
        creator = request.query.get("creatorEmail")
        contests = [c for c in self.contests.values() if not creator or c["creatorEmail"] == creator]
        return web.json_response(contests)

    async def get_contest(self, request):
        return web.json_response(self._contest(request))

    async def create_contest(self, request):
        user = self._auth(request)
        cid = uuid.uuid4().hex[:8]
        contest = self.add_contest(cid, **request["body"], creatorEmail=user["email"], status="pending")
        return web.json_response(contest, status=201)

    async def update_contest(self, request):
        self._auth(request)
        contest = self._contest(request)
        contest.update(request["body"])
        return web.json_response(contest)

    async def delete_contest(self, request):
        self._auth(request)
        self._contest(request)
        del self.contests[request.match_info["id"]]
        return web.json_response({"deleted": True})

    async def set_status(self, request):
        user = self._auth(request)
        if user["role"] != "admin":
            return web.json_response({"message": "Forbidden"}, status=403)
        contest = self._contest(request)
        contest["status"] = request["body"]["status"]
        return web.json_response(contest)

    async def register_contest(self, request):
        user = self._auth(request)
        contest = self._contest(request)
        if user["email"] not in contest["participants"]:
            contest["participants"].append(user["email"])
        if request["body"].get("paymentId"):
            self.payment_ids.append(request["body"]["paymentId"])
        return web.json_response({"message": "Registered"})

    async def submit_task(self, request):
        user = self._auth(request)
        contest = self._contest(request)
        contest["submissions"].append(
            {
                "userEmail": user["email"],
                "userName": user["name"],
                "submission": request["body"]["submission"],
                "status": "pending",
            }
        )
        return web.json_response({"message": "Submitted"})

    async def declare_winner(self, request):
        self._auth(request)
        contest = self._contest(request)
        email = request["body"]["userEmail"]
        for sub in contest["submissions"]:
            if sub["userEmail"] == email:
                sub["status"] = "winner"
                contest["winner"] = {"name": sub["userName"], "email": email, "photo": None}
        return web.json_response(contest)

    async def leaderboard(self, request):
        return web.json_response([{"name": "Alice", "points": 30}])

    # ==================== users & payments ====================

    async def list_users(self, request):
        self._auth(request)
        return web.json_response(list(self.users.values()))

    async def set_role(self, request):
        self._auth(request)
        for user in self.users.values():
            if user["_id"] == request.match_info["id"]:
                user["role"] = request["body"]["role"]
                return web.json_response(user)
        return web.json_response({"message": "User not found"}, status=404)

    async def packages(self, request):
        return web.json_response([{"id": "pro", "name": "Pro", "price": 20}])

    async def buy_package(self, request):
        user = self._auth(request)
        user["currentPackage"] = request["body"]["packageId"]
        return web.json_response({"message": "Package purchased"})

    async def payment_intent(self, request):
        self._auth(request)
        if not self.stripe_configured:
            return web.json_response({"message": "Stripe is not configured"}, status=500)
        return web.json_response({"clientSecret": "pi_123_secret_456"})


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def serve(fake_api):
    """Run scenario(client, api) against a live fake server; returns its result."""

    def run(scenario):
        async def main():
            server = TestServer(fake_api.app())
            await server.start_server()
            try:
                settings = Settings(api_url=str(server.make_url("/")))
                async with ContestHubClient(settings) as client:
                    return await scenario(client, fake_api)
            finally:
                await server.close()

        return asyncio.run(main())

    return run
