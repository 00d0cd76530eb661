"""
Contract checks against the public JSONPlaceholder API.

    flakeproof run examples.jsonplaceholder:suite
"""

import asyncio

from flakeproof import Suite, TestMode

BASE_URL = "https://jsonplaceholder.typicode.com"
POST_KEYS = {"userId", "id", "title", "body"}

suite = Suite("JSONPlaceholder API Tests", mode=TestMode.RUN, timeout_ms=10000)

posts = suite.describe("Posts API - GET Requests")


@posts.test("should retrieve all posts")
async def retrieve_all_posts(ctx):
    response = await ctx.http.get(f"{BASE_URL}/posts")
    assert response.status == 200
    assert isinstance(response.body, list)
    assert len(response.body) == 100
    assert response.duration_ms < 2000
    assert set(response.body[0]) == POST_KEYS


@posts.test("should retrieve a single post by id")
async def retrieve_single_post(ctx):
    response = await ctx.http.get(f"{BASE_URL}/posts/1")
    assert response.status == 200
    assert response.body["id"] == 1
    assert POST_KEYS <= set(response.body)


@posts.test("should filter posts by userId")
async def filter_posts_by_user(ctx):
    response = await ctx.http.get(f"{BASE_URL}/posts?userId=1")
    assert response.status == 200
    assert response.body
    assert all(post["userId"] == 1 for post in response.body)


@posts.test("should return 404 for non-existent post")
async def missing_post(ctx):
    response = await ctx.http.get(f"{BASE_URL}/posts/999999", fail_on_status_code=False)
    assert response.status == 404


writes = suite.describe("Posts API - Write Requests")


@writes.test("should create a new post")
async def create_post(ctx):
    new_post = {"title": "Test Post Title", "body": "This is a test post body content", "userId": 1}
    response = await ctx.http.post(f"{BASE_URL}/posts", body=new_post)
    assert response.status == 201
    assert "id" in response.body
    for key, value in new_post.items():
        assert response.body[key] == value


@writes.test("should update an existing post completely")
async def replace_post(ctx):
    updated = {"id": 1, "title": "Updated Title", "body": "Updated body content", "userId": 1}
    response = await ctx.http.put(f"{BASE_URL}/posts/1", body=updated)
    assert response.status == 200
    assert response.body["title"] == updated["title"]


@writes.test("should partially update a post")
async def patch_post(ctx):
    response = await ctx.http.patch(f"{BASE_URL}/posts/1", body={"title": "Patched Title"})
    assert response.status == 200
    assert response.body["title"] == "Patched Title"
    assert "body" in response.body


@writes.test("should delete a post")
async def delete_post(ctx):
    response = await ctx.http.delete(f"{BASE_URL}/posts/1")
    assert response.status == 200


resources = suite.describe("Related Resources")


@resources.test("should retrieve comments by postId query parameter")
async def comments_by_post(ctx):
    response = await ctx.http.get(f"{BASE_URL}/comments?postId=1")
    assert response.status == 200
    assert all(comment["postId"] == 1 for comment in response.body)


@resources.test("should filter completed todos")
async def completed_todos(ctx):
    response = await ctx.http.get(f"{BASE_URL}/todos?completed=true")
    assert response.status == 200
    assert all(todo["completed"] is True for todo in response.body)


@resources.test("should retrieve a single user")
async def single_user(ctx):
    response = await ctx.http.get(f"{BASE_URL}/users/1")
    assert response.status == 200
    for key in ("id", "name", "username", "email", "address", "company"):
        assert key in response.body


performance = suite.describe("Performance & Response Time Tests")


@performance.test("should handle concurrent requests")
async def concurrent_requests(ctx):
    responses = await asyncio.gather(*(ctx.http.get(f"{BASE_URL}/posts/{i}") for i in range(1, 6)))
    assert [r.status for r in responses] == [200] * 5


headers = suite.describe("Response Headers & Content Type Tests")


@headers.test("should return correct content-type header")
async def content_type(ctx):
    response = await ctx.http.get(f"{BASE_URL}/posts")
    assert "application/json" in response.headers.get("content-type", "")


@headers.test("should support limit parameter")
async def limit_parameter(ctx):
    response = await ctx.http.get(f"{BASE_URL}/posts?_limit=5")
    assert response.status == 200
    assert len(response.body) == 5
