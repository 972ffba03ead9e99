import httpx
import pytest

from rdsync.config import Settings
from rdsync.rd.client import (
    RDStationClient,
    RDStationError,
    extract_pipelines,
    extract_stages,
    stage_pipeline_id,
    stage_position,
)

def make_client(handler, attempts: int = 3) -> RDStationClient:
    settings = Settings(
        database_url="sqlite://",
        rd_api_token="rd_token_test",
        rd_api_base_url="https://crm.example.test/api/v1/",
        rd_api_max_attempts=attempts,
    )
    return RDStationClient(settings, transport=httpx.MockTransport(handler), wait_multiplier=0)

def test_token_goes_in_query_string():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"_id": "D1", "name": "Sinistro - Maria"})

    with make_client(handler) as c:
        deal = c.get_deal("D1")

    assert deal["_id"] == "D1"
    assert seen[0].url.path == "/api/v1/deals/D1"
    assert seen[0].url.params["token"] == "rd_token_test"

def test_retries_on_503_then_succeeds():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < 3:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json={"deal_pipelines": [{"_id": "p1", "name": "Sinistros"}]})

    with make_client(handler) as c:
        pipelines = c.list_pipelines("org_1")

    assert calls["n"] == 3
    assert pipelines == [{"_id": "p1", "name": "Sinistros"}]

def test_retries_on_429_and_transport_errors():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectTimeout("slow", request=request)
        if calls["n"] == 2:
            return httpx.Response(429)
        return httpx.Response(200, json=[])

    with make_client(handler) as c:
        assert c.list_stages("p1") == []
    assert calls["n"] == 3

def test_gives_up_after_max_attempts():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(500, text="kaboom")

    with make_client(handler, attempts=2) as c:
        with pytest.raises(RDStationError) as ei:
            c.update_deal("D1", {"name": "x"})

    assert calls["n"] == 2
    assert ei.value.status_code == 500
    assert ei.value.body == "kaboom"

def test_unreachable_host_is_an_rd_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with make_client(handler, attempts=2) as c:
        with pytest.raises(RDStationError) as ei:
            c.get_deal("D1")
    assert ei.value.status_code is None

def test_client_errors_are_not_retried():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(422, json={"errors": {"name": ["missing"]}})

    with make_client(handler) as c:
        with pytest.raises(RDStationError) as ei:
            c.create_deal({})

    assert calls["n"] == 1
    assert ei.value.status_code == 422

def test_create_deal_posts_json_body():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"_id": "D7"})

    with make_client(handler) as c:
        resp = c.create_deal({"name": "Sinistro - Maria", "rating": 4})

    assert resp == {"_id": "D7"}
    assert seen[0].method == "POST"
    assert b'"rating":4' in seen[0].content.replace(b" ", b"")

def test_list_tasks_reads_wrapped_envelope():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["deal_id"] == "D1"
        return httpx.Response(200, json={"data": {"tasks": [{"_id": "t1"}]}})

    with make_client(handler) as c:
        assert c.list_tasks("D1") == [{"_id": "t1"}]

def test_empty_body_is_an_empty_dict():
    with make_client(lambda request: httpx.Response(204)) as c:
        assert c.update_deal("D1", {}) == {}

def test_missing_token_is_a_configuration_error():
    with pytest.raises(ValueError):
        RDStationClient(Settings(database_url="sqlite://", rd_api_token=None))

@pytest.mark.parametrize(
    "payload",
    [
        [{"_id": "p1"}],
        {"deal_pipelines": [{"_id": "p1"}]},
        {"data": {"pipelines": [{"_id": "p1"}]}},
        {"deal_pipelines": {"deal_pipelines": [{"_id": "p1"}]}},
    ],
)
def test_extract_pipelines_shapes(payload):
    assert extract_pipelines(payload) == [{"_id": "p1"}]

def test_extract_from_unknown_shape_is_empty():
    assert extract_stages({"something": "else"}) == []
    assert extract_stages("nope") == []

def test_stage_helpers():
    assert stage_pipeline_id({"deal_pipeline_id": "p1"}) == "p1"
    assert stage_pipeline_id({"deal_pipeline": "p2"}) == "p2"
    assert stage_pipeline_id({"deal_pipeline": {"_id": "p3"}}) == "p3"
    assert stage_pipeline_id({}) is None
    assert stage_position({"position": 2}) == 2
    assert stage_position({"order": 4}) == 4
    assert stage_position({}) == 0
