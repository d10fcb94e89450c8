# tests/test_tokens.py

import core.tokens as tokens


def test_count_tokens_falls_back_to_characters(monkeypatch):
    monkeypatch.setattr(tokens, "_get_tokenizer", lambda _model: None)
    assert tokens.count_tokens("abcdefgh", "gpt-4o") == 2
    assert tokens.count_tokens("", "gpt-4o") == 0


def test_count_tokens_uses_encoder(monkeypatch):
    class FakeEncoder:
        def encode(self, text, allowed_special=None):
            return text.split()

    monkeypatch.setattr(tokens, "_get_tokenizer", lambda _model: FakeEncoder())
    assert tokens.count_tokens("one two three", "gpt-4o") == 3
