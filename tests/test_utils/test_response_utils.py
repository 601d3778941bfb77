from chatloop_core.utils.response_utils import (
    create_user_content,
    get_function_calls,
    get_response_text,
    get_structured_response,
)


def _response(*parts):
    return {"candidates": [{"content": {"role": "model", "parts": list(parts)}}]}


def test_create_user_content_accepts_mixed_input():
    part = {"inline_data": {"mime_type": "image/png", "data": "AA"}}

    assert create_user_content("hi") == {
        "role": "user",
        "parts": [{"text": "hi"}],
    }
    assert create_user_content(["look", part]) == {
        "role": "user",
        "parts": [{"text": "look"}, part],
    }
    assert create_user_content(part)["parts"] == [part]


def test_response_text_skips_thoughts():
    response = _response(
        {"text": "pondering", "thought": True}, {"text": "A"}, {"text": "B"}
    )
    assert get_response_text(response) == "AB"
    assert get_response_text({"candidates": []}) is None


def test_function_calls_are_extracted():
    call = {"id": "1", "name": "ls", "args": {}}
    response = _response({"text": "x"}, {"function_call": call})

    assert get_function_calls(response) == [call]
    assert get_function_calls(_response({"text": "x"})) is None


def test_structured_response_combines_text_and_calls():
    call = {"name": "ls", "args": {}}
    structured = get_structured_response(
        _response({"text": "Listing"}, {"function_call": call})
    )

    assert structured.startswith("Listing\n")
    assert '"name": "ls"' in structured
