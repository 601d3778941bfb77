import pytest

from chatloop_core.core.history import (
    extract_curated_history,
    is_function_response,
    is_valid_content,
    is_valid_response,
    validate_history,
)


def _user(text: str) -> dict:
    return {"role": "user", "parts": [{"text": text}]}


def _model(text: str) -> dict:
    return {"role": "model", "parts": [{"text": text}]}


def test_valid_content_requires_non_empty_parts():
    assert is_valid_content(_model("hi"))
    assert not is_valid_content({"role": "model", "parts": []})
    assert not is_valid_content({"role": "model", "parts": [{}]})
    assert not is_valid_content(_model(""))


def test_empty_thought_text_is_still_valid():
    content = {"role": "model", "parts": [{"text": "", "thought": True}]}
    assert is_valid_content(content)


def test_valid_response_checks_first_candidate():
    assert is_valid_response({"candidates": [{"content": _model("ok")}]})
    assert not is_valid_response({"candidates": []})
    assert not is_valid_response({"candidates": [{"content": None}]})
    assert not is_valid_response(
        {"candidates": [{"content": {"role": "model", "parts": []}}]}
    )


def test_curated_history_keeps_valid_exchanges():
    history = [_user("a"), _model("b"), _user("c"), _model("d")]
    assert extract_curated_history(history) == history


def test_invalid_model_turn_drops_preceding_user_turn():
    history = [
        _user("a"),
        _model("b"),
        _user("c"),
        {"role": "model", "parts": []},
        _user("e"),
        _model("f"),
    ]
    curated = extract_curated_history(history)
    assert curated == [_user("a"), _model("b"), _user("e"), _model("f")]


def test_invalid_run_drops_whole_model_run():
    history = [
        _user("a"),
        _model("b1"),
        _model(""),
        _user("c"),
        _model("d"),
    ]
    assert extract_curated_history(history) == [_user("c"), _model("d")]


def test_curated_history_alternates_roles():
    history = [
        _user("1"),
        _model("2"),
        _user("3"),
        _model(""),
        _user("5"),
        _model("6"),
        _user("7"),
        {"role": "model", "parts": [{}]},
    ]
    curated = extract_curated_history(history)
    assert curated[0]["role"] == "user"
    roles = [c["role"] for c in curated]
    assert all(a != b for a, b in zip(roles, roles[1:]))


def test_empty_history_curates_to_empty():
    assert extract_curated_history([]) == []


def test_validate_history_rejects_unknown_role():
    validate_history([_user("a"), _model("b")])
    with pytest.raises(ValueError):
        validate_history([{"role": "system", "parts": [{"text": "x"}]}])


def test_is_function_response():
    content = {
        "role": "user",
        "parts": [{"function_response": {"name": "t", "response": {}}}],
    }
    assert is_function_response(content)
    assert not is_function_response(_user("hi"))
    assert not is_function_response({"role": "user", "parts": []})
