"""Tests for request context middleware."""

from uuid import uuid4

import pytest

from src.core.middleware import extract_course_id


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/v1/courses/{cid}/contents", "{cid}"),
        ("/ws/courses/{cid}/chat", "{cid}"),
        ("/v1/courses/{cid}", "{cid}"),
        ("/v1/courses", None),
        ("/v1/courses/not-a-uuid/contents", None),
    ],
)
def test_extract_course_id(path, expected) -> None:
    """Course ids are picked out of course paths only."""
    cid = str(uuid4())
    result = extract_course_id(path.format(cid=cid))
    assert result == (expected.format(cid=cid) if expected else None)


def test_request_id_is_echoed(client) -> None:
    """A client request id is sent back unchanged."""
    response = client.get("/health/live", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


def test_request_id_generated(client) -> None:
    """A request id is generated when none is sent."""
    response = client.get("/health/live")

    assert response.headers["X-Request-ID"]
