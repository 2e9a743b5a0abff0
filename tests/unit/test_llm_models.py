import json

from agents.llm_models import bind_llm_models
from config.registry import ANALYZER_KEY, GENERATOR_KEY, SUMMARIZER_KEY, get_model, is_bound


class FakeClient:
    def __init__(self, content):
        self.content = content
        self.requests = []
        self.timeouts = []

    def post(self, url, *, json, headers, timeout):
        self.requests.append(json)
        self.timeouts.append(timeout)
        content = self.content

        class Response:
            status_code = 200

            @staticmethod
            def json():
                return {"choices": [{"message": {"content": content}}]}

        return Response()


def _write_config(path):
    route = {
        "name": "local",
        "base_url": "http://llm.local",
        "endpoint": "/v1/chat/completions",
        "model": "test-model",
        "timeout_s": 5.0,
    }
    config = {
        "llm_routes": {"local": route},
        "registry": {ANALYZER_KEY: "local", GENERATOR_KEY: "local", SUMMARIZER_KEY: "local"},
    }
    path.write_text(json.dumps(config), encoding="utf-8")


def test_missing_config_binds_nothing(tmp_path):
    assert bind_llm_models(str(tmp_path / "absent.json")) is False
    assert not is_bound(ANALYZER_KEY)


def test_bound_route_returns_plain_dict(tmp_path):
    path = tmp_path / "app_config.json"
    _write_config(path)
    client = FakeClient(json.dumps({"text": "Why this role?"}))
    assert bind_llm_models(str(path), client=client) is True
    assert is_bound(SUMMARIZER_KEY)

    reply = get_model(GENERATOR_KEY)(
        system_prompt_path="prompts/question_generator.txt",
        inputs={"position": "Engineer"},
        temperature=0.3,
        max_tokens=100,
    )
    assert reply["text"] == "Why this role?"
    assert client.requests[0]["temperature"] == 0.3
    assert "interviewer" in client.requests[0]["messages"][1]["content"]
    assert client.timeouts == [5.0]
