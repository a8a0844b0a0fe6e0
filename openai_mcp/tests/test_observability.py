from openai_mcp.observability.logging import _render


def test_render_masks_sensitive_keys_and_drops_none():
    rendered = _render({"path": "/", "password": "hunter2", "Authorization": "Basic abc", "client": None})
    assert rendered == "Authorization=*** password=*** path=/"
    assert "hunter2" not in rendered
