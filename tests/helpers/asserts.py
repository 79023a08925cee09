from typing import Any, Dict, List, Optional
from fastapi.testclient import TestClient

def api_call(client: TestClient, method: str, path: str, headers: Optional[Dict[str, str]] = None, json: Any = None, expected_min: int = 200, expected_max: int = 300):
    response = client.request(method, path, headers=headers, json=json)
    ok = expected_min <= response.status_code < expected_max
    try:
        body = response.json()
    except Exception:
        body = response.text
    assert ok, f"{method} {path} => {response.status_code}, body={body}, json={json}"
    return response

def assert_error(response, status_code: int, code: Optional[str] = None):
    assert response.status_code == status_code, f"expected {status_code}, got {response.status_code}: {response.text}"
    body = response.json()
    assert "error" in body, body
    if code:
        assert body["error"]["code"] == code, body

def correct_option_id(question: Dict[str, Any]) -> int:
    return next(o["id"] for o in question["options"] if o["is_correct"])

def wrong_option_id(question: Dict[str, Any]) -> int:
    return next(o["id"] for o in question["options"] if not o["is_correct"])

def correct_option_ids(question: Dict[str, Any]) -> List[int]:
    return [o["id"] for o in question["options"] if o["is_correct"]]
